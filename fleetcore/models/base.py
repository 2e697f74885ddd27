"""
SQLAlchemy declarative base for fleet core models.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.orm import DeclarativeBase


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def json_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def snapshot_json(data: Dict[str, Any]) -> Dict[str, Any]:
    """Column snapshot with UUID/datetime/Decimal values as strings."""
    return {key: json_value(value) for key, value in data.items()}


class Base(DeclarativeBase):
    """
    Base class for all fleet core models.

    Adds column snapshots, which the hook runner hands to hooks as the
    "old" row and the audit writer stores as before/after images.
    """

    def to_dict(self, json_safe: bool = False) -> Dict[str, Any]:
        """Snapshot of all mapped column attributes."""
        data = {attr.key: getattr(self, attr.key) for attr in inspect(self).mapper.column_attrs}
        if json_safe:
            return snapshot_json(data)
        return data
