"""
Permission evaluator.

Read-only RBAC queries:

- Company owner: every resource, every action
- Everyone else: role from Membership, then a matching RolePermission row
- Global admin: flag on the user row, checked separately

Service mutations call require_permission() before they touch anything.
"""

import logging
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.exceptions import PermissionDenied, ValidationError
from fleetcore.models import Company, Membership, RolePermission, User
from fleetcore.models.enums import Action, MembershipRole, Resource

logger = logging.getLogger(__name__)


def _coerce(enum_cls, value: Union[str, Resource, Action], field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            context={"field": field, "value": str(value), "allowed": [member.value for member in enum_cls]},
        ) from None


async def has_permission(
    session: AsyncSession,
    user_id: Optional[UUID],
    company_id: Optional[UUID],
    resource: Union[str, Resource],
    action: Union[str, Action],
) -> bool:
    """
    Check whether a user may perform action on resource within a company.

    Args:
        session: Database session
        user_id: User to check
        company_id: Company the resource belongs to
        resource: One of Resource
        action: One of Action

    Returns:
        True if allowed

    Raises:
        ValidationError: If resource or action is not in the fixed catalog
    """
    resource = _coerce(Resource, resource, "resource")
    action = _coerce(Action, action, "action")

    if user_id is None or company_id is None:
        return False

    owner_id = await session.scalar(select(Company.owner_id).where(Company.id == company_id))
    if owner_id is None:
        return False
    if owner_id == user_id:
        return True

    role = await session.scalar(
        select(Membership.role).where(
            Membership.user_id == user_id,
            Membership.company_id == company_id,
        )
    )
    if role is None:
        return False

    granted = await session.scalar(
        select(
            exists().where(
                RolePermission.company_id == company_id,
                RolePermission.role == role,
                RolePermission.resource == resource.value,
                RolePermission.action == action.value,
            )
        )
    )
    return bool(granted)


async def has_inventory_permission(
    session: AsyncSession,
    user_id: Optional[UUID],
    company_id: Optional[UUID],
    action: Union[str, Action],
) -> bool:
    """has_permission() on the parts_inventory resource."""
    return await has_permission(session, user_id, company_id, Resource.PARTS_INVENTORY, action)


async def is_global_admin(session: AsyncSession, user_id: Optional[UUID]) -> bool:
    if user_id is None:
        return False
    flag = await session.scalar(select(User.is_global_admin).where(User.id == user_id))
    return bool(flag)


async def is_company_admin(session: AsyncSession, user_id: Optional[UUID], company_id: UUID) -> bool:
    """Owner of the company or holder of its admin membership."""
    if user_id is None:
        return False

    owner_id = await session.scalar(select(Company.owner_id).where(Company.id == company_id))
    if owner_id is not None and owner_id == user_id:
        return True

    role = await session.scalar(
        select(Membership.role).where(
            Membership.user_id == user_id,
            Membership.company_id == company_id,
        )
    )
    return role in (MembershipRole.OWNER.value, MembershipRole.ADMIN.value)


async def require_permission(
    session: AsyncSession,
    actor: ActorContext,
    company_id: UUID,
    resource: Union[str, Resource],
    action: Union[str, Action],
) -> None:
    """
    Authorization gate for service mutations.

    The platform-admin actor passes; everyone else goes through
    has_permission().

    Raises:
        PermissionDenied: If the actor may not perform the action
    """
    if actor.is_platform_admin:
        return

    if not await has_permission(session, actor.user_id, company_id, resource, action):
        logger.info(
            "Permission denied: user=%s company=%s %s:%s",
            actor.user_id, company_id, resource, action,
        )
        raise PermissionDenied(
            f"Permission denied: {_coerce(Resource, resource, 'resource').value}:"
            f"{_coerce(Action, action, 'action').value} required",
            context={"company_id": str(company_id), "user_id": str(actor.user_id) if actor.user_id else None},
        )
