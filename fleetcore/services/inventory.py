"""
Parts inventory mutations.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore import hooks
from fleetcore.context import ActorContext
from fleetcore.database import transaction
from fleetcore.exceptions import NotFound, PermissionDenied, ValidationError
from fleetcore.hooks.inventory import return_stock
from fleetcore.models import PartsInventory
from fleetcore.models.enums import Action
from fleetcore.services.permissions import has_inventory_permission

logger = logging.getLogger(__name__)


async def _require_inventory(session: AsyncSession, actor: ActorContext, company_id: UUID, action: Action) -> None:
    if actor.is_platform_admin:
        return
    if not await has_inventory_permission(session, actor.user_id, company_id, action):
        raise PermissionDenied(
            f"Permission denied: parts_inventory:{action.value} required",
            context={"company_id": str(company_id)},
        )


async def create_part(
    session: AsyncSession,
    actor: ActorContext,
    company_id: UUID,
    part_number: str,
    description: str,
    unit_cost: Decimal,
    quantity_in_stock: int = 0,
    **fields: Any,
) -> PartsInventory:
    if quantity_in_stock < 0:
        raise ValidationError("quantity_in_stock cannot be negative")

    async with transaction(session, actor):
        await _require_inventory(session, actor, company_id, Action.CREATE)
        part = await hooks.insert(
            session,
            PartsInventory(
                company_id=company_id,
                part_number=part_number,
                description=description,
                unit_cost=unit_cost,
                quantity_in_stock=quantity_in_stock,
                **fields,
            ),
        )
    return part


async def restock_part(session: AsyncSession, actor: ActorContext, part_id: UUID, quantity: int) -> PartsInventory:
    """Receive stock for a part (purchase, return to vendor reversal)."""
    if quantity <= 0:
        raise ValidationError("Restock quantity must be greater than zero", context={"quantity": quantity})

    async with transaction(session, actor):
        part = await session.get(PartsInventory, part_id)
        if part is None:
            raise NotFound(f"Part {part_id} not found", context={"part_id": str(part_id)})
        await _require_inventory(session, actor, part.company_id, Action.EDIT)
        await return_stock(session, part_id, quantity)
    await session.refresh(part)
    logger.info("Restocked part %s with %s units", part_id, quantity)
    return part
