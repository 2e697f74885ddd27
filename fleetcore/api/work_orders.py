"""
Work order API routes.

Work orders plus their part lines and labor entries. Costs in responses
are always the hook-derived values.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.database import get_db
from fleetcore.middleware.auth import get_actor
from fleetcore.services import work_orders as work_order_service

router = APIRouter(prefix="/api/v1/fleet/work-orders", tags=["work_orders"])


# Pydantic schemas
class WorkOrderCreate(BaseModel):
    """Schema for creating a work order; pass vehicle_id or asset_type + asset_id."""
    company_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: str = "repair"
    priority: str = "medium"
    asset_type: Optional[str] = None
    asset_id: Optional[UUID] = None
    vehicle_id: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    due_date: Optional[datetime] = None


class WorkOrderUpdate(BaseModel):
    """Schema for updating a work order."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    asset_type: Optional[str] = None
    asset_id: Optional[UUID] = None
    vehicle_id: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    due_date: Optional[datetime] = None
    parts_cost: Optional[Decimal] = None
    labor_cost: Optional[Decimal] = None


class WorkOrderResponse(BaseModel):
    """Schema for work order response."""
    id: UUID
    company_id: UUID
    title: str
    type: str
    status: str
    priority: str
    asset_type: Optional[str]
    asset_id: Optional[UUID]
    vehicle_id: Optional[UUID]
    assigned_to: Optional[UUID]
    parts_cost: Decimal
    labor_cost: Decimal
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class PartLineCreate(BaseModel):
    part_id: UUID
    quantity: int = Field(..., gt=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)


class PartLineUpdate(BaseModel):
    part_id: Optional[UUID] = None
    quantity: Optional[int] = Field(None, gt=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)


class PartLineResponse(BaseModel):
    id: UUID
    work_order_id: UUID
    part_id: UUID
    quantity: int
    unit_cost: Decimal
    total_cost: Decimal

    class Config:
        from_attributes = True


class LaborCreate(BaseModel):
    technician_id: UUID
    start_time: datetime
    end_time: Optional[datetime] = None
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    is_overtime: bool = False
    break_minutes: int = Field(default=0, ge=0)


class LaborClose(BaseModel):
    end_time: Optional[datetime] = None


class LaborResponse(BaseModel):
    id: UUID
    work_order_id: UUID
    technician_id: UUID
    start_time: datetime
    end_time: Optional[datetime]
    break_minutes: int
    hourly_rate: Decimal
    is_overtime: bool
    total_hours: Decimal
    total_cost: Decimal

    class Config:
        from_attributes = True


@router.post("", response_model=WorkOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_work_order(
    work_order: WorkOrderCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Create a work order. Requires work_orders:create."""
    data = work_order.model_dump(exclude_none=True)
    company_id = data.pop("company_id")
    title = data.pop("title")
    return await work_order_service.create_work_order(db, actor, company_id, title, **data)


@router.patch("/{work_order_id}", response_model=WorkOrderResponse)
async def update_work_order(
    work_order_id: UUID,
    work_order_update: WorkOrderUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Update a work order. Supplied cost values are ignored and recomputed."""
    return await work_order_service.update_work_order(
        db, actor, work_order_id, work_order_update.model_dump(exclude_unset=True)
    )


@router.delete("/{work_order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_work_order(
    work_order_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Delete a work order; consumed parts go back to inventory."""
    await work_order_service.delete_work_order(db, actor, work_order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{work_order_id}/parts", response_model=PartLineResponse, status_code=status.HTTP_201_CREATED)
async def add_part(
    work_order_id: UUID,
    line: PartLineCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Consume a part. 409 when stock is insufficient."""
    return await work_order_service.add_part(
        db, actor, work_order_id, line.part_id, line.quantity, line.unit_cost
    )


@router.patch("/parts/{line_id}", response_model=PartLineResponse)
async def update_part(
    line_id: UUID,
    line_update: PartLineUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    return await work_order_service.update_part(db, actor, line_id, line_update.model_dump(exclude_unset=True))


@router.delete("/parts/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_part(
    line_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    await work_order_service.remove_part(db, actor, line_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{work_order_id}/labor", response_model=LaborResponse, status_code=status.HTTP_201_CREATED)
async def add_labor(
    work_order_id: UUID,
    labor: LaborCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    return await work_order_service.add_labor(db, actor, work_order_id, **labor.model_dump())


@router.post("/labor/{entry_id}/close", response_model=LaborResponse)
async def close_labor(
    entry_id: UUID,
    labor_close: LaborClose,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Stop the clock on an in-progress labor entry."""
    return await work_order_service.close_labor(db, actor, entry_id, labor_close.end_time)


@router.delete("/labor/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_labor(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    await work_order_service.remove_labor(db, actor, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
