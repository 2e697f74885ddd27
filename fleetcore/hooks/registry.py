"""
Hook registry and mutation runner.

Invariant hooks are async functions ``hook(session, old, new)``:

- ``old`` is a column snapshot (dict) of the row before the mutation,
  None on insert
- ``new`` is the ORM instance being written, None on delete

A hook either completes or raises a FleetCoreError; the surrounding
transaction rolls back everything on error. BEFORE hooks run before the
row is flushed and may rewrite derived fields on ``new``; AFTER hooks run
once the row is flushed and see the pending state of the transaction.
"""

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Type

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.exceptions import ValidationError
from fleetcore.models.base import Base

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

BEFORE = "before"
AFTER = "after"

Snapshot = Dict[str, Any]
HookFn = Callable[[AsyncSession, Optional[Snapshot], Optional[Base]], Awaitable[None]]


class HookRegistry:
    """Maps (model, operation, phase) to the ordered hooks to run."""

    def __init__(self):
        self._hooks: Dict[Tuple[Type[Base], str, str], List[HookFn]] = defaultdict(list)

    def register(self, model: Type[Base], *operations: str, phase: str = BEFORE):
        """
        Decorator registering a hook.

        Usage:
            @registry.before(WorkOrder, INSERT, UPDATE)
            async def sync_asset_fields(session, old, new):
                ...
        """

        def decorator(fn: HookFn) -> HookFn:
            for operation in operations:
                self._hooks[(model, operation, phase)].append(fn)
            return fn

        return decorator

    def before(self, model: Type[Base], *operations: str):
        return self.register(model, *operations, phase=BEFORE)

    def after(self, model: Type[Base], *operations: str):
        return self.register(model, *operations, phase=AFTER)

    def hooks_for(self, model: Type[Base], operation: str, phase: str) -> List[HookFn]:
        return list(self._hooks.get((model, operation, phase), ()))

    async def run(
        self,
        session: AsyncSession,
        model: Type[Base],
        operation: str,
        phase: str,
        old: Optional[Snapshot],
        new: Optional[Base],
    ) -> None:
        for hook in self.hooks_for(model, operation, phase):
            logger.debug("Running %s-%s hook %s on %s", phase, operation, hook.__name__, model.__name__)
            await hook(session, old, new)


registry = HookRegistry()


def apply_column_defaults(obj: Base) -> None:
    """Fill unset columns from their Python-side defaults so before-insert hooks see them."""
    for attr in inspect(type(obj)).column_attrs:
        column = attr.columns[0]
        if getattr(obj, attr.key) is not None or column.default is None:
            continue
        if column.default.is_scalar:
            setattr(obj, attr.key, column.default.arg)
        elif column.default.is_callable:
            setattr(obj, attr.key, column.default.arg(None))


async def insert(session: AsyncSession, obj: Base) -> Base:
    """Insert a row with its hooks inside the session's transaction."""
    model = type(obj)
    apply_column_defaults(obj)
    await registry.run(session, model, INSERT, BEFORE, None, obj)
    session.add(obj)
    await session.flush()
    await registry.run(session, model, INSERT, AFTER, None, obj)
    return obj


async def update(session: AsyncSession, obj: Base, changes: Mapping[str, Any]) -> Base:
    """Apply field changes to a row with its hooks inside the session's transaction."""
    model = type(obj)
    old = obj.to_dict()
    columns = {attr.key for attr in inspect(model).column_attrs}

    for field, value in changes.items():
        if field not in columns or field == "id":
            raise ValidationError(
                f"Unknown or read-only field '{field}' for {model.__name__}",
                context={"field": field},
            )
        setattr(obj, field, value)

    await registry.run(session, model, UPDATE, BEFORE, old, obj)
    await session.flush()
    await registry.run(session, model, UPDATE, AFTER, old, obj)
    return obj


async def delete(session: AsyncSession, obj: Base) -> Snapshot:
    """Delete a row with its hooks inside the session's transaction."""
    model = type(obj)
    old = obj.to_dict()
    await registry.run(session, model, DELETE, BEFORE, old, None)
    await session.delete(obj)
    await session.flush()
    await registry.run(session, model, DELETE, AFTER, old, None)
    return old
