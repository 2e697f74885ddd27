"""
Work order, part line and labor entry mutations.

Every function authorizes against work_orders and runs as one transaction;
inventory, line totals and work order costs are kept in step by the hooks.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore import hooks
from fleetcore.context import ActorContext
from fleetcore.database import transaction
from fleetcore.exceptions import NotFound, ValidationError
from fleetcore.models import WorkOrder, WorkOrderLabor, WorkOrderPart
from fleetcore.models.base import _utc_now
from fleetcore.models.enums import Action, Resource, WorkOrderStatus
from fleetcore.services.permissions import require_permission

logger = logging.getLogger(__name__)


async def get_work_order(session: AsyncSession, work_order_id: UUID) -> WorkOrder:
    work_order = await session.get(WorkOrder, work_order_id)
    if work_order is None:
        raise NotFound(f"Work order {work_order_id} not found", context={"work_order_id": str(work_order_id)})
    return work_order


async def _get_line(session: AsyncSession, model, line_id: UUID):
    line = await session.get(model, line_id)
    if line is None:
        raise NotFound(f"{model.__name__} {line_id} not found", context={"id": str(line_id)})
    return line


async def _authorize(session: AsyncSession, actor: ActorContext, work_order: WorkOrder, action: Action) -> None:
    await require_permission(session, actor, work_order.company_id, Resource.WORK_ORDERS, action)


async def create_work_order(
    session: AsyncSession, actor: ActorContext, company_id: UUID, title: str, **fields: Any
) -> WorkOrder:
    """
    Create a work order.

    Pass either vehicle_id or asset_type + asset_id; the asset hook keeps
    them consistent. Cost fields are always recomputed.
    """
    async with transaction(session, actor):
        await require_permission(session, actor, company_id, Resource.WORK_ORDERS, Action.CREATE)
        work_order = await hooks.insert(
            session,
            WorkOrder(company_id=company_id, title=title, created_by=actor.user_id, **fields),
        )
    logger.info("Work order %s created in company %s", work_order.id, company_id)
    return work_order


async def update_work_order(
    session: AsyncSession, actor: ActorContext, work_order_id: UUID, changes: Mapping[str, Any]
) -> WorkOrder:
    changes = dict(changes)
    async with transaction(session, actor):
        work_order = await get_work_order(session, work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)

        status = changes.get("status")
        if status == WorkOrderStatus.COMPLETED.value and work_order.status != status:
            changes.setdefault("completed_at", _utc_now())
        elif status is not None and status != WorkOrderStatus.COMPLETED.value:
            changes.setdefault("completed_at", None)

        await hooks.update(session, work_order, changes)
    return work_order


async def delete_work_order(session: AsyncSession, actor: ActorContext, work_order_id: UUID) -> None:
    """Delete a work order; its part lines go back to inventory first."""
    async with transaction(session, actor):
        work_order = await get_work_order(session, work_order_id)
        await _authorize(session, actor, work_order, Action.DELETE)

        parts = await session.execute(select(WorkOrderPart).where(WorkOrderPart.work_order_id == work_order_id))
        for line in parts.scalars().all():
            await hooks.delete(session, line)
        labor = await session.execute(select(WorkOrderLabor).where(WorkOrderLabor.work_order_id == work_order_id))
        for entry in labor.scalars().all():
            await hooks.delete(session, entry)

        await hooks.delete(session, work_order)
    logger.info("Work order %s deleted", work_order_id)


async def add_part(
    session: AsyncSession,
    actor: ActorContext,
    work_order_id: UUID,
    part_id: UUID,
    quantity: int,
    unit_cost: Optional[Decimal] = None,
) -> WorkOrderPart:
    """
    Add a part line; stock is drawn down in the same transaction.

    Raises:
        InsufficientInventory: If stock is lower than quantity
    """
    async with transaction(session, actor):
        work_order = await get_work_order(session, work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        line = await hooks.insert(
            session,
            WorkOrderPart(work_order_id=work_order_id, part_id=part_id, quantity=quantity, unit_cost=unit_cost),
        )
    return line


async def update_part(
    session: AsyncSession, actor: ActorContext, line_id: UUID, changes: Mapping[str, Any]
) -> WorkOrderPart:
    async with transaction(session, actor):
        line = await _get_line(session, WorkOrderPart, line_id)
        work_order = await get_work_order(session, line.work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        await hooks.update(session, line, changes)
    return line


async def remove_part(session: AsyncSession, actor: ActorContext, line_id: UUID) -> None:
    async with transaction(session, actor):
        line = await _get_line(session, WorkOrderPart, line_id)
        work_order = await get_work_order(session, line.work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        await hooks.delete(session, line)


async def add_labor(
    session: AsyncSession,
    actor: ActorContext,
    work_order_id: UUID,
    technician_id: UUID,
    start_time: datetime,
    end_time: Optional[datetime] = None,
    hourly_rate: Optional[Decimal] = None,
    is_overtime: bool = False,
    break_minutes: int = 0,
) -> WorkOrderLabor:
    """
    Log labor against a work order.

    Without end_time the entry is in progress and adds nothing to
    labor_cost until closed. hourly_rate defaults to the technician's rate.
    """
    async with transaction(session, actor):
        work_order = await get_work_order(session, work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        entry = await hooks.insert(
            session,
            WorkOrderLabor(
                work_order_id=work_order_id,
                technician_id=technician_id,
                start_time=start_time,
                end_time=end_time,
                hourly_rate=hourly_rate,
                is_overtime=is_overtime,
                break_minutes=break_minutes,
            ),
        )
    return entry


async def update_labor(
    session: AsyncSession, actor: ActorContext, entry_id: UUID, changes: Mapping[str, Any]
) -> WorkOrderLabor:
    async with transaction(session, actor):
        entry = await _get_line(session, WorkOrderLabor, entry_id)
        work_order = await get_work_order(session, entry.work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        await hooks.update(session, entry, changes)
    return entry


async def close_labor(
    session: AsyncSession, actor: ActorContext, entry_id: UUID, end_time: Optional[datetime] = None
) -> WorkOrderLabor:
    """Stamp end_time (now by default) on an in-progress labor entry."""
    async with transaction(session, actor):
        entry = await _get_line(session, WorkOrderLabor, entry_id)
        if entry.end_time is not None:
            raise ValidationError("Labor entry is already closed", context={"id": str(entry_id)})
        work_order = await get_work_order(session, entry.work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        await hooks.update(session, entry, {"end_time": end_time or _utc_now()})
    return entry


async def remove_labor(session: AsyncSession, actor: ActorContext, entry_id: UUID) -> None:
    async with transaction(session, actor):
        entry = await _get_line(session, WorkOrderLabor, entry_id)
        work_order = await get_work_order(session, entry.work_order_id)
        await _authorize(session, actor, work_order, Action.EDIT)
        await hooks.delete(session, entry)
