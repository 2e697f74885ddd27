"""
Audit log API routes.

Read-only access to user change history and admin bootstrap attempts.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.database import get_db
from fleetcore.middleware.auth import get_actor
from fleetcore.services.audit import list_admin_audit_logs, list_audit_logs

router = APIRouter(prefix="/api/v1/fleet/audit", tags=["audit"])


class AuditLogResponse(BaseModel):
    id: UUID
    user_id: UUID
    action: str
    details: Optional[Dict[str, Any]]
    performed_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class AdminAuditLogResponse(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    action: str
    details: Optional[Dict[str, Any]]
    success: bool
    error_message: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/logs", response_model=List[AuditLogResponse])
async def get_audit_logs(
    company_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """
    List user audit entries, newest first.

    Args:
        company_id: Entries for the company's users
        user_id: Entries for a single user
        limit: Page size (defaults to the configured page limit)
    """
    return await list_audit_logs(db, actor.user_id, company_id=company_id, user_id=user_id, limit=limit)


@router.get("/admin-logs/{company_id}", response_model=List[AdminAuditLogResponse])
async def get_admin_audit_logs(
    company_id: UUID,
    days_back: Optional[int] = Query(None, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """List admin bootstrap and provisioning attempts for a company's users."""
    return await list_admin_audit_logs(db, actor.user_id, company_id, days_back=days_back)
