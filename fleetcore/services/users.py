"""
User and membership mutations.
"""

import logging
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore import hooks
from fleetcore.context import ActorContext
from fleetcore.database import transaction
from fleetcore.exceptions import (
    CompanyAlreadyHasAdmin,
    DuplicateMembership,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from fleetcore.models import Membership, User
from fleetcore.models.enums import Action, MembershipRole, Resource
from fleetcore.services.permissions import require_permission

logger = logging.getLogger(__name__)


async def get_user(session: AsyncSession, user_id: UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found", context={"user_id": str(user_id)})
    return user


async def create_user(session: AsyncSession, actor: ActorContext, **fields: Any) -> User:
    """Create a profile row directly (imports, seeding, system work)."""
    async with transaction(session, actor):
        user = await hooks.insert(session, User(**fields))
    return user


async def _authorize_user_change(
    session: AsyncSession, actor: ActorContext, target: User, action: Action
) -> None:
    if actor.is_platform_admin or actor.user_id == target.id:
        return
    if target.company_id is None:
        raise PermissionDenied(f"Permission denied: users:{action.value} required")
    await require_permission(session, actor, target.company_id, Resource.USERS, action)


async def update_user(
    session: AsyncSession, actor: ActorContext, user_id: UUID, changes: Mapping[str, Any]
) -> User:
    """
    Update a user profile.

    Users may edit themselves; company users with users:edit may edit
    others. is_global_admin changes are rejected by the user hooks unless
    the actor is the platform admin.
    """
    async with transaction(session, actor):
        user = await get_user(session, user_id)
        if user.company_id != changes.get("company_id", user.company_id) and not actor.is_platform_admin:
            raise PermissionDenied("Only the platform admin can move users between companies")
        await _authorize_user_change(session, actor, user, Action.EDIT)
        await hooks.update(session, user, changes)
    return user


async def delete_user(session: AsyncSession, actor: ActorContext, user_id: UUID) -> None:
    async with transaction(session, actor):
        user = await get_user(session, user_id)
        if actor.user_id != user.id:
            await _authorize_user_change(session, actor, user, Action.DELETE)
        memberships = await session.execute(select(Membership).where(Membership.user_id == user.id))
        for membership in memberships.scalars().all():
            await hooks.delete(session, membership)
        await hooks.delete(session, user)
    logger.info("User %s deleted by %s", user_id, actor.user_id)


async def add_member(
    session: AsyncSession,
    actor: ActorContext,
    company_id: UUID,
    user_id: UUID,
    role: str = MembershipRole.MEMBER.value,
) -> Membership:
    """
    Add an existing user to a company.

    Raises:
        DuplicateMembership: If the user already belongs to the company
        CompanyAlreadyHasAdmin: If role is admin and the company has one
    """
    if role not in (MembershipRole.ADMIN.value, MembershipRole.MEMBER.value, MembershipRole.USER.value):
        raise ValidationError(f"Invalid membership role: {role!r}", context={"role": role})

    async with transaction(session, actor):
        await require_permission(session, actor, company_id, Resource.USERS, Action.CREATE)
        await get_user(session, user_id)

        existing = await session.scalar(
            select(Membership.id).where(
                Membership.user_id == user_id,
                Membership.company_id == company_id,
            )
        )
        if existing is not None:
            raise DuplicateMembership(
                "User is already a member of this company",
                context={"user_id": str(user_id), "company_id": str(company_id)},
            )

        try:
            membership = await hooks.insert(
                session, Membership(user_id=user_id, company_id=company_id, role=role)
            )
        except IntegrityError as exc:
            if role == MembershipRole.ADMIN.value:
                raise CompanyAlreadyHasAdmin(
                    "Company already has an admin", context={"company_id": str(company_id)}
                ) from exc
            raise DuplicateMembership(
                "User is already a member of this company",
                context={"user_id": str(user_id), "company_id": str(company_id)},
            ) from exc
    return membership
