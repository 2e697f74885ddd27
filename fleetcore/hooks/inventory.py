"""
Inventory adjustment hooks for work order part lines.

Stock moves through conditional UPDATEs so two transactions drawing on the
same part cannot both succeed past zero:

    UPDATE parts_inventory
       SET quantity_in_stock = quantity_in_stock - :n
     WHERE id = :part_id AND quantity_in_stock >= :n

The UPDATEs bypass the identity map; refresh a loaded part to see its stock.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.exceptions import InsufficientInventory, NotFound, ValidationError
from fleetcore.hooks.registry import DELETE, INSERT, UPDATE, registry
from fleetcore.models import PartsInventory, WorkOrder, WorkOrderPart

logger = logging.getLogger(__name__)


async def take_stock(session: AsyncSession, part_id: UUID, quantity: int) -> int:
    """
    Atomically decrement stock.

    Returns:
        Remaining quantity in stock

    Raises:
        NotFound: If the part does not exist
        InsufficientInventory: If stock is lower than quantity
    """
    result = await session.execute(
        update(PartsInventory)
        .where(PartsInventory.id == part_id, PartsInventory.quantity_in_stock >= quantity)
        .values(quantity_in_stock=PartsInventory.quantity_in_stock - quantity)
        .returning(PartsInventory.quantity_in_stock)
        .execution_options(synchronize_session=False)
    )
    remaining = result.scalar_one_or_none()
    if remaining is None:
        exists = await session.scalar(select(PartsInventory.id).where(PartsInventory.id == part_id))
        if exists is None:
            raise NotFound(f"Part {part_id} not found", context={"part_id": str(part_id)})
        raise InsufficientInventory(part_id, quantity)

    logger.debug("Took %s of part %s, %s left", quantity, part_id, remaining)
    return remaining


async def return_stock(session: AsyncSession, part_id: UUID, quantity: int) -> int:
    """Atomically increment stock; returns the new quantity."""
    result = await session.execute(
        update(PartsInventory)
        .where(PartsInventory.id == part_id)
        .values(quantity_in_stock=PartsInventory.quantity_in_stock + quantity)
        .returning(PartsInventory.quantity_in_stock)
        .execution_options(synchronize_session=False)
    )
    stocked = result.scalar_one_or_none()
    if stocked is None:
        raise NotFound(f"Part {part_id} not found", context={"part_id": str(part_id)})

    logger.debug("Returned %s of part %s, %s in stock", quantity, part_id, stocked)
    return stocked


@registry.before(WorkOrderPart, INSERT, UPDATE)
async def validate_part_line(session: AsyncSession, old, new: WorkOrderPart) -> None:
    """Positive quantity; part and work order in the same company; default unit cost."""
    if new.quantity is None or new.quantity <= 0:
        raise ValidationError("Quantity must be greater than zero", context={"quantity": new.quantity})
    if old is not None and old["work_order_id"] != new.work_order_id:
        raise ValidationError("A part line cannot move between work orders")

    part_changed = old is None or old["part_id"] != new.part_id
    if not part_changed and new.unit_cost is not None:
        return

    company_id = await session.scalar(
        select(WorkOrder.company_id).where(WorkOrder.id == new.work_order_id)
    )
    if company_id is None:
        raise NotFound("Work order not found", context={"work_order_id": str(new.work_order_id)})

    part = await session.get(PartsInventory, new.part_id)
    if part is None:
        raise NotFound(f"Part {new.part_id} not found", context={"part_id": str(new.part_id)})
    if part.company_id != company_id:
        raise ValidationError(
            "Part belongs to a different company",
            context={"part_id": str(new.part_id), "company_id": str(company_id)},
        )

    if new.unit_cost is None:
        new.unit_cost = part.unit_cost


@registry.before(WorkOrderPart, INSERT)
async def reserve_stock(session: AsyncSession, old, new: WorkOrderPart) -> None:
    await take_stock(session, new.part_id, new.quantity)


@registry.before(WorkOrderPart, UPDATE)
async def adjust_stock(session: AsyncSession, old, new: WorkOrderPart) -> None:
    if old["part_id"] != new.part_id:
        # Swapped part: the old one gets its quantity back in full
        await return_stock(session, old["part_id"], old["quantity"])
        await take_stock(session, new.part_id, new.quantity)
        return

    delta = new.quantity - old["quantity"]
    if delta > 0:
        await take_stock(session, new.part_id, delta)
    elif delta < 0:
        await return_stock(session, new.part_id, -delta)


@registry.before(WorkOrderPart, DELETE)
async def release_stock(session: AsyncSession, old, new) -> None:
    await return_stock(session, old["part_id"], old["quantity"])
