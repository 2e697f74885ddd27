"""
Dialect-aware INSERT ... ON CONFLICT.

PostgreSQL and SQLite share the on_conflict_do_update / on_conflict_do_nothing
API but expose it from their own dialect modules.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def upsert_insert(session: AsyncSession, model):
    """Return an ON CONFLICT capable insert() for the session's backend."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")
