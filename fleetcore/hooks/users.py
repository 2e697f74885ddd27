"""
User hooks: global-admin guard, updated_at refresh and audit trail.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import current_actor
from fleetcore.exceptions import PermissionDenied
from fleetcore.hooks.registry import DELETE, INSERT, UPDATE, registry
from fleetcore.models import User
from fleetcore.models.base import _utc_now
from fleetcore.services.audit import record_user_change

logger = logging.getLogger(__name__)


@registry.before(User, INSERT, UPDATE)
async def guard_global_admin_flag(session: AsyncSession, old, new: User) -> None:
    """Only the platform-admin actor may grant or revoke is_global_admin."""
    previous = old["is_global_admin"] if old is not None else False
    if bool(new.is_global_admin) == bool(previous):
        return

    actor = current_actor(session)
    if not actor.is_platform_admin:
        logger.warning("Rejected is_global_admin change on user %s by %s", new.id, actor.user_id)
        raise PermissionDenied(
            "Only the platform admin can change is_global_admin",
            context={"user_id": str(new.id)},
        )


@registry.before(User, UPDATE)
async def touch_updated_at(session: AsyncSession, old, new: User) -> None:
    new.updated_at = _utc_now()


@registry.after(User, INSERT)
async def audit_user_insert(session: AsyncSession, old, new: User) -> None:
    await record_user_change(session, INSERT, None, new)


@registry.after(User, UPDATE)
async def audit_user_update(session: AsyncSession, old, new: User) -> None:
    await record_user_change(session, UPDATE, old, new)


@registry.after(User, DELETE)
async def audit_user_delete(session: AsyncSession, old, new) -> None:
    await record_user_change(session, DELETE, old, None)
