"""
Company management API routes.

Companies, their vehicles, equipment, technicians, parts and members.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.database import get_db
from fleetcore.middleware.auth import get_actor
from fleetcore.models.enums import Action, Resource
from fleetcore.services import companies as company_service
from fleetcore.services import inventory as inventory_service
from fleetcore.services import users as user_service
from fleetcore.services.permissions import has_permission

router = APIRouter(prefix="/api/v1/fleet/companies", tags=["companies"])


# Pydantic schemas
class CompanyCreate(BaseModel):
    """Schema for creating a company. max_vehicles is derived from the tier."""
    name: str = Field(..., min_length=1, max_length=255)
    contact_email: EmailStr
    subscription_tier: str = Field(default="test_drive", max_length=50)
    max_vehicles: Optional[int] = None


class CompanyUpdate(BaseModel):
    """Schema for updating a company."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_email: Optional[EmailStr] = None
    subscription_tier: Optional[str] = Field(None, max_length=50)
    max_vehicles: Optional[int] = None


class CompanyResponse(BaseModel):
    """Schema for company response."""
    id: UUID
    name: str
    contact_email: str
    subscription_tier: str
    max_vehicles: int
    owner_id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class VehicleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    vin: Optional[str] = Field(None, max_length=50)
    status: str = Field(default="active", max_length=50)


class VehicleResponse(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    vin: Optional[str]
    status: str

    class Config:
        from_attributes = True


class EquipmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    serial_number: Optional[str] = Field(None, max_length=100)


class EquipmentResponse(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    serial_number: Optional[str]
    status: str

    class Config:
        from_attributes = True


class TechnicianCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    user_id: Optional[UUID] = None


class TechnicianResponse(BaseModel):
    id: UUID
    company_id: UUID
    first_name: str
    last_name: str
    status: str
    hourly_rate: Optional[Decimal]

    class Config:
        from_attributes = True


class PartCreate(BaseModel):
    part_number: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=255)
    unit_cost: Decimal = Field(..., ge=0)
    quantity_in_stock: int = Field(default=0, ge=0)
    reorder_point: int = Field(default=0, ge=0)


class PartResponse(BaseModel):
    id: UUID
    company_id: UUID
    part_number: str
    description: str
    unit_cost: Decimal
    quantity_in_stock: int
    reorder_point: int

    class Config:
        from_attributes = True


class MemberCreate(BaseModel):
    user_id: UUID
    role: str = Field(default="member", pattern=r"^(admin|member|user)$")


class MemberResponse(BaseModel):
    id: UUID
    user_id: UUID
    company_id: UUID
    role: str

    class Config:
        from_attributes = True


class PermissionCheckResponse(BaseModel):
    resource: str
    action: str
    allowed: bool


@router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
async def create_company(
    company: CompanyCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Create a company owned by the caller.

    The caller becomes the owner; default settings are seeded and
    max_vehicles follows the subscription tier.
    """
    return await company_service.create_company(db, actor, **company.model_dump())


@router.patch("/{company_id}", response_model=CompanyResponse)
async def update_company(
    company_id: UUID,
    company_update: CompanyUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Update a company. Requires settings:edit."""
    return await company_service.update_company(
        db, actor, company_id, company_update.model_dump(exclude_unset=True)
    )


@router.post("/{company_id}/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    company_id: UUID,
    vehicle: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Add a vehicle. Fails with 409 once the plan's vehicle limit is reached."""
    return await company_service.create_vehicle(db, actor, company_id, **vehicle.model_dump())


@router.post("/{company_id}/equipment", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_equipment(
    company_id: UUID,
    equipment: EquipmentCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    return await company_service.create_equipment(db, actor, company_id, **equipment.model_dump())


@router.post("/{company_id}/technicians", response_model=TechnicianResponse, status_code=status.HTTP_201_CREATED)
async def create_technician(
    company_id: UUID,
    technician: TechnicianCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    return await company_service.create_technician(db, actor, company_id, **technician.model_dump())


@router.post("/{company_id}/parts", response_model=PartResponse, status_code=status.HTTP_201_CREATED)
async def create_part(
    company_id: UUID,
    part: PartCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Add a part to the company's inventory. Requires parts_inventory:create."""
    return await inventory_service.create_part(db, actor, company_id, **part.model_dump())


@router.post("/{company_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    company_id: UUID,
    member: MemberCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Add an existing user to the company. Requires users:create."""
    return await user_service.add_member(db, actor, company_id, member.user_id, member.role)


@router.get("/{company_id}/permissions/{resource}/{action}", response_model=PermissionCheckResponse)
async def check_permission(
    company_id: UUID,
    resource: Resource,
    action: Action,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Whether the caller may perform action on resource in this company."""
    allowed = await has_permission(db, actor.user_id, company_id, resource, action)
    return PermissionCheckResponse(resource=resource.value, action=action.value, allowed=allowed)


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)


@router.post("/parts/{part_id}/restock", response_model=PartResponse)
async def restock_part(
    part_id: UUID,
    restock: RestockRequest,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Receive stock for a part. Requires parts_inventory:edit."""
    return await inventory_service.restock_part(db, actor, part_id, restock.quantity)
