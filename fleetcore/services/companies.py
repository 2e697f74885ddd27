"""
Company, vehicle, equipment and technician mutations.
"""

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore import hooks
from fleetcore.context import ActorContext
from fleetcore.database import transaction
from fleetcore.exceptions import NotFound, PermissionDenied, ValidationError
from fleetcore.models import Company, Equipment, Technician, Vehicle
from fleetcore.models.enums import Action, Resource, SubscriptionTier
from fleetcore.services.permissions import require_permission
from fleetcore.services.users import get_user

logger = logging.getLogger(__name__)


async def get_company(session: AsyncSession, company_id: UUID) -> Company:
    company = await session.get(Company, company_id)
    if company is None:
        raise NotFound(f"Company {company_id} not found", context={"company_id": str(company_id)})
    return company


async def create_company(
    session: AsyncSession,
    actor: ActorContext,
    name: str,
    contact_email: str,
    subscription_tier: str = SubscriptionTier.TEST_DRIVE.value,
    owner_id: Optional[UUID] = None,
    **fields: Any,
) -> Company:
    """
    Create a company owned by the actor.

    The platform admin may create a company on behalf of another user by
    passing owner_id. max_vehicles, the owner membership and the default
    settings catalog are produced by the company hooks.
    """
    owner_id = owner_id or actor.user_id
    if owner_id is None:
        raise ValidationError("A company needs an owner")
    if owner_id != actor.user_id and not actor.is_platform_admin:
        raise PermissionDenied("Companies can only be created for yourself")

    async with transaction(session, actor):
        await get_user(session, owner_id)
        company = await hooks.insert(
            session,
            Company(
                name=name,
                contact_email=contact_email,
                subscription_tier=subscription_tier,
                owner_id=owner_id,
                **fields,
            ),
        )
    return company


async def update_company(
    session: AsyncSession, actor: ActorContext, company_id: UUID, changes: Mapping[str, Any]
) -> Company:
    async with transaction(session, actor):
        company = await get_company(session, company_id)
        await require_permission(session, actor, company_id, Resource.SETTINGS, Action.EDIT)
        await hooks.update(session, company, changes)
    return company


async def create_vehicle(
    session: AsyncSession, actor: ActorContext, company_id: UUID, name: str, **fields: Any
) -> Vehicle:
    async with transaction(session, actor):
        await require_permission(session, actor, company_id, Resource.VEHICLES, Action.CREATE)
        vehicle = await hooks.insert(session, Vehicle(company_id=company_id, name=name, **fields))
    return vehicle


async def create_equipment(
    session: AsyncSession, actor: ActorContext, company_id: UUID, name: str, **fields: Any
) -> Equipment:
    async with transaction(session, actor):
        await require_permission(session, actor, company_id, Resource.EQUIPMENT, Action.CREATE)
        equipment = await hooks.insert(session, Equipment(company_id=company_id, name=name, **fields))
    return equipment


async def create_technician(
    session: AsyncSession,
    actor: ActorContext,
    company_id: UUID,
    first_name: str,
    last_name: str,
    **fields: Any,
) -> Technician:
    async with transaction(session, actor):
        await require_permission(session, actor, company_id, Resource.SETTINGS, Action.EDIT)
        technician = await hooks.insert(
            session,
            Technician(company_id=company_id, first_name=first_name, last_name=last_name, **fields),
        )
    return technician
