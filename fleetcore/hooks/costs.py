"""
Line derivation and cost rollup hooks.

Part line:   total_cost = quantity * unit_cost
Labor line:  total_hours = (end - start) in hours - break_minutes / 60
             total_cost  = total_hours * hourly_rate (* 1.5 when overtime)
             both zero while end_time is null
Work order:  parts_cost = sum(part.total_cost)
             labor_cost = sum(labor.total_cost) over closed entries

The rollup locks the work order row (SELECT ... FOR UPDATE) before summing
its lines, the counterpart of the conditional stock UPDATE in
hooks/inventory.py: a writer that waited on the lock recomputes from the
lines committed ahead of it instead of overwriting their total.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.exceptions import ValidationError
from fleetcore.hooks.registry import DELETE, INSERT, UPDATE, registry
from fleetcore.models import WorkOrder, WorkOrderLabor, WorkOrderPart

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
OVERTIME_MULTIPLIER = Decimal("1.5")


def to_money(value) -> Decimal:
    """Round to two decimal places (half up)."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_labor_totals(
    start_time: datetime,
    end_time: Optional[datetime],
    break_minutes: int,
    hourly_rate: Decimal,
    is_overtime: bool,
) -> Tuple[Decimal, Decimal]:
    """
    Hours and cost for a labor entry.

    Returns:
        (total_hours, total_cost), both 0.00 for an entry still in progress

    Raises:
        ValidationError: If end_time precedes start_time or breaks exceed the shift
    """
    if break_minutes is None or break_minutes < 0:
        raise ValidationError("break_minutes cannot be negative", context={"break_minutes": break_minutes})
    if end_time is None:
        return ZERO, ZERO

    start, end = _as_utc(start_time), _as_utc(end_time)
    if end < start:
        raise ValidationError(
            "end_time cannot be before start_time",
            context={"start_time": start.isoformat(), "end_time": end.isoformat()},
        )

    elapsed = Decimal(str((end - start).total_seconds())) / Decimal(3600)
    hours = elapsed - Decimal(break_minutes) / Decimal(60)
    if hours < 0:
        raise ValidationError("Breaks exceed the logged time", context={"break_minutes": break_minutes})

    rate = Decimal(str(hourly_rate))
    if is_overtime:
        rate = rate * OVERTIME_MULTIPLIER
    return to_money(hours), to_money(hours * rate)


def lock_work_order_stmt(work_order_id: UUID):
    """Row lock on the work order, taken before its line totals are summed."""
    return select(WorkOrder.id).where(WorkOrder.id == work_order_id).with_for_update()


async def work_order_totals(session: AsyncSession, work_order_id: UUID) -> Tuple[Decimal, Decimal]:
    """(parts_cost, labor_cost) as currently visible inside the transaction."""
    parts_cost = await session.scalar(
        select(func.coalesce(func.sum(WorkOrderPart.total_cost), 0))
        .where(WorkOrderPart.work_order_id == work_order_id)
    )
    labor_cost = await session.scalar(
        select(func.coalesce(func.sum(WorkOrderLabor.total_cost), 0))
        .where(
            WorkOrderLabor.work_order_id == work_order_id,
            WorkOrderLabor.end_time.is_not(None),
        )
    )
    return to_money(parts_cost), to_money(labor_cost)


@registry.before(WorkOrderPart, INSERT, UPDATE)
async def derive_part_total(session: AsyncSession, old, new: WorkOrderPart) -> None:
    new.total_cost = to_money(Decimal(new.quantity) * Decimal(str(new.unit_cost)))


@registry.before(WorkOrderLabor, INSERT, UPDATE)
async def derive_labor_totals(session: AsyncSession, old, new: WorkOrderLabor) -> None:
    if new.hourly_rate is None:
        raise ValidationError("hourly_rate is required for labor entries")
    if old is not None and old["work_order_id"] != new.work_order_id:
        raise ValidationError("A labor entry cannot move between work orders")

    new.total_hours, new.total_cost = compute_labor_totals(
        new.start_time,
        new.end_time,
        new.break_minutes,
        new.hourly_rate,
        new.is_overtime,
    )


@registry.before(WorkOrder, INSERT)
async def reset_work_order_costs(session: AsyncSession, old, new: WorkOrder) -> None:
    # A new work order has no lines yet
    new.parts_cost = ZERO
    new.labor_cost = ZERO


@registry.before(WorkOrder, UPDATE)
async def refresh_work_order_costs(session: AsyncSession, old, new: WorkOrder) -> None:
    await session.execute(lock_work_order_stmt(new.id))
    new.parts_cost, new.labor_cost = await work_order_totals(session, new.id)


@registry.after(WorkOrderPart, INSERT, UPDATE, DELETE)
@registry.after(WorkOrderLabor, INSERT, UPDATE, DELETE)
async def rollup_work_order_costs(session: AsyncSession, old, new) -> None:
    """Persist recomputed parts_cost/labor_cost on the owning work order."""
    work_order_id = new.work_order_id if new is not None else old["work_order_id"]
    # Concurrent line writers queue here, so each sum includes every committed line
    await session.execute(lock_work_order_stmt(work_order_id))
    parts_cost, labor_cost = await work_order_totals(session, work_order_id)

    await session.execute(
        update(WorkOrder)
        .where(WorkOrder.id == work_order_id)
        .values(parts_cost=parts_cost, labor_cost=labor_cost)
        .execution_options(synchronize_session="fetch")
    )
    logger.debug(
        "Work order %s costs: parts=%s labor=%s", work_order_id, parts_cost, labor_cost
    )
