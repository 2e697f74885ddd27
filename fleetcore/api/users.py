"""
User profile API routes.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.database import get_db
from fleetcore.middleware.auth import get_actor
from fleetcore.services import users as user_service

router = APIRouter(prefix="/api/v1/fleet/users", tags=["users"])


class UserUpdate(BaseModel):
    """Schema for updating a user profile."""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[str] = Field(None, max_length=20)
    status: Optional[str] = Field(None, max_length=20)
    company_id: Optional[UUID] = None
    is_global_admin: Optional[bool] = None


class UserResponse(BaseModel):
    """Schema for user response."""
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    status: str
    company_id: Optional[UUID]
    is_global_admin: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


@router.get("/me", response_model=UserResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Current user's profile. 404 until provisioning has created it."""
    return await user_service.get_user(db, actor.user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    user_update: UserUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Update a user profile.

    Raises:
        PermissionDenied: When editing someone else without users:edit, or
            when a non-platform caller touches is_global_admin
    """
    return await user_service.update_user(db, actor, user_id, user_update.model_dump(exclude_unset=True))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    await user_service.delete_user(db, actor, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
