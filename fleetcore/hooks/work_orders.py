"""
Work order invariant hooks.

- Asset-field sync: vehicle_id is set if and only if asset_type is vehicle,
  and then equals asset_id
- Asset reference validation
- Technician assignment validation
- Enum validation for type/status/priority/asset_type
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.exceptions import InvalidAssetReference, NotFound, ValidationError
from fleetcore.hooks.registry import INSERT, UPDATE, registry
from fleetcore.models import Equipment, Technician, Vehicle, WorkOrder, WorkOrderLabor
from fleetcore.models.enums import (
    AssetType,
    TechnicianStatus,
    WorkOrderPriority,
    WorkOrderStatus,
    WorkOrderType,
    values,
)

logger = logging.getLogger(__name__)

ASSET_TABLES = {
    AssetType.VEHICLE.value: Vehicle,
    AssetType.EQUIPMENT.value: Equipment,
}


def check_enum(field: str, value: Optional[str], enum_cls, nullable: bool = False) -> None:
    """Raise ValidationError when value is not one of enum_cls."""
    if value is None and nullable:
        return
    if value not in values(enum_cls):
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            context={"field": field, "value": value, "allowed": sorted(values(enum_cls))},
        )


def sync_asset_fields(work_order: WorkOrder, old: Optional[dict] = None) -> None:
    """
    Reconcile vehicle_id with asset_type/asset_id in place.

    On update a vehicle_id carried over unchanged yields to a changed
    asset_type/asset_id.
    """
    # vehicle_id takes precedence only when this write set it; an untouched
    # vehicle_id must not pin the work order to its previous vehicle
    vehicle_id_supplied = work_order.vehicle_id is not None and (
        old is None
        or old["vehicle_id"] != work_order.vehicle_id
        or (old["asset_type"], old["asset_id"]) == (work_order.asset_type, work_order.asset_id)
    )
    if vehicle_id_supplied:
        work_order.asset_type = AssetType.VEHICLE.value
        work_order.asset_id = work_order.vehicle_id
    elif work_order.asset_type == AssetType.VEHICLE.value and work_order.asset_id is not None:
        work_order.vehicle_id = work_order.asset_id
    elif work_order.asset_type != AssetType.VEHICLE.value:
        work_order.vehicle_id = None


async def validate_technician(session: AsyncSession, technician_id: UUID, company_id: UUID) -> Technician:
    """An assigned technician must exist, be active and work for the company."""
    technician = await session.get(Technician, technician_id)
    if technician is None or technician.company_id != company_id:
        raise ValidationError(
            "Technician does not belong to this company",
            context={"technician_id": str(technician_id), "company_id": str(company_id)},
        )
    if technician.status != TechnicianStatus.ACTIVE.value:
        raise ValidationError(
            "Technician is not active",
            context={"technician_id": str(technician_id), "status": technician.status},
        )
    return technician


@registry.before(WorkOrder, INSERT, UPDATE)
async def validate_work_order_fields(session: AsyncSession, old, new: WorkOrder) -> None:
    check_enum("type", new.type, WorkOrderType)
    check_enum("status", new.status, WorkOrderStatus)
    check_enum("priority", new.priority, WorkOrderPriority)
    check_enum("asset_type", new.asset_type, AssetType, nullable=True)

    if old is not None and old["company_id"] != new.company_id:
        raise ValidationError("A work order cannot move between companies")


@registry.before(WorkOrder, INSERT, UPDATE)
async def sync_work_order_asset(session: AsyncSession, old, new: WorkOrder) -> None:
    """Asset-field sync plus reference check against the table the asset type implies."""
    sync_asset_fields(new, old)

    if new.asset_id is None:
        if new.asset_type is not None:
            raise InvalidAssetReference(new.asset_type, None)
        return
    if new.asset_type is None:
        raise ValidationError("asset_type is required when asset_id is set")

    model = ASSET_TABLES[new.asset_type]
    owner_company = await session.scalar(select(model.company_id).where(model.id == new.asset_id))
    if owner_company is None or owner_company != new.company_id:
        raise InvalidAssetReference(new.asset_type, new.asset_id)


@registry.before(WorkOrder, INSERT, UPDATE)
async def validate_work_order_assignment(session: AsyncSession, old, new: WorkOrder) -> None:
    if new.assigned_to is None:
        return
    if old is not None and old["assigned_to"] == new.assigned_to:
        return
    await validate_technician(session, new.assigned_to, new.company_id)


@registry.before(WorkOrderLabor, INSERT, UPDATE)
async def validate_labor_technician(session: AsyncSession, old, new: WorkOrderLabor) -> None:
    if old is not None and old["technician_id"] == new.technician_id:
        return

    company_id = await session.scalar(
        select(WorkOrder.company_id).where(WorkOrder.id == new.work_order_id)
    )
    if company_id is None:
        raise NotFound(
            "Work order not found",
            context={"work_order_id": str(new.work_order_id)},
        )

    technician = await validate_technician(session, new.technician_id, company_id)
    if new.hourly_rate is None:
        new.hourly_rate = technician.hourly_rate
