"""
Invariant hooks.

Importing this package registers every hook with the registry. Hooks run
in registration order, so validation modules are imported before the ones
that derive values from validated fields.
"""

from fleetcore.hooks.registry import (
    AFTER,
    BEFORE,
    DELETE,
    INSERT,
    UPDATE,
    HookRegistry,
    delete,
    insert,
    registry,
    update,
)
from fleetcore.hooks import work_orders, inventory, costs, companies, users  # noqa: F401

__all__ = [
    "AFTER",
    "BEFORE",
    "DELETE",
    "INSERT",
    "UPDATE",
    "HookRegistry",
    "delete",
    "insert",
    "registry",
    "update",
]
