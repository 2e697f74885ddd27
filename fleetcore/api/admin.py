"""
Admin bootstrap API routes.

Lets a freshly registered user claim admin of the company whose contact
email matches their own.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.database import get_db
from fleetcore.middleware.auth import get_actor
from fleetcore.services.admin_bootstrap import promote_to_admin

router = APIRouter(prefix="/api/v1/fleet/admin", tags=["admin"])


class PromotionResponse(BaseModel):
    """Outcome of an admin promotion. Expected failures are not HTTP errors."""

    success: bool
    error: Optional[str] = None
    already_admin: bool = False
    company_has_admin: bool = False
    user_id: Optional[UUID] = None
    company_id: Optional[UUID] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    preserved_global_admin: Optional[bool] = None


@router.post("/promote", response_model=PromotionResponse)
async def promote(
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    Promote the caller to company admin.

    Every attempt is recorded in the admin audit log, whatever its outcome.

    Returns:
        The promotion result; check success, already_admin and
        company_has_admin
    """
    await db.rollback()
    result = await promote_to_admin(db, actor.user_id)
    return PromotionResponse(**result.to_dict())
