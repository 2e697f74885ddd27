"""
Audit log writer and read path.

Writes go through a SAVEPOINT: a failing audit insert is rolled back on its
own and logged as a warning, and the mutation that triggered it carries on.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.config.settings import get_settings
from fleetcore.context import current_actor
from fleetcore.exceptions import PermissionDenied, ValidationError
from fleetcore.models import AdminAuditLog, AuditLog, Membership, User
from fleetcore.models.base import _utc_now, snapshot_json
from fleetcore.services.permissions import is_company_admin, is_global_admin

logger = logging.getLogger(__name__)

settings = get_settings()


async def write_audit_entry(
    session: AsyncSession,
    user_id: UUID,
    action: str,
    details: Optional[Dict[str, Any]] = None,
    performed_by: Optional[UUID] = None,
) -> Optional[AuditLog]:
    """
    Append a user audit row. Never raises.

    Args:
        session: Session of the triggering mutation
        user_id: Subject of the entry
        action: INSERT, UPDATE, DELETE, CREATE_USER, MAKE_ADMIN, ...
        details: Structured payload
        performed_by: Acting identity; defaults to the session's actor,
            or the platform-admin identity for system work

    Returns:
        The entry, or None if the write failed
    """
    actor = current_actor(session)
    try:
        async with session.begin_nested():
            entry = AuditLog(
                user_id=user_id,
                action=action,
                details=details or {},
                performed_by=performed_by or actor.audit_identity(),
            )
            session.add(entry)
        return entry
    except Exception as exc:
        logger.warning("Audit log write failed (%s for user %s): %s", action, user_id, exc)
        return None


async def record_user_change(
    session: AsyncSession,
    operation: str,
    old: Optional[Dict[str, Any]],
    new: Optional[User],
) -> Optional[AuditLog]:
    """Audit a User insert/update/delete with its before/after images."""
    actor = current_actor(session)
    details: Dict[str, Any] = {
        "operation": operation.upper(),
        "is_platform_admin": actor.is_platform_admin,
    }
    if new is not None:
        details["new_data"] = new.to_dict(json_safe=True)
    if old is not None:
        details["old_data"] = snapshot_json(old)

    user_id = new.id if new is not None else old["id"]
    return await write_audit_entry(session, user_id, operation.upper(), details)


async def write_admin_audit_entry(
    session: AsyncSession,
    user_id: Optional[UUID],
    action: str,
    success: bool,
    details: Optional[Dict[str, Any]] = None,
    error_message: Optional[str] = None,
) -> AdminAuditLog:
    """Append an admin audit row (bootstrap and provisioning outcomes)."""
    entry = AdminAuditLog(
        user_id=user_id,
        action=action,
        success=success,
        details=details or {},
        error_message=error_message,
    )
    session.add(entry)
    await session.flush()
    return entry


async def _can_view(
    session: AsyncSession,
    viewer_id: UUID,
    company_id: Optional[UUID],
    user_id: Optional[UUID],
) -> bool:
    if await is_global_admin(session, viewer_id):
        return True

    if company_id is not None:
        if await is_company_admin(session, viewer_id, company_id):
            return True
        # Own entries within a company filter
        return user_id is not None and user_id == viewer_id

    if user_id == viewer_id:
        return True
    subject_company = await session.scalar(select(User.company_id).where(User.id == user_id))
    if subject_company is None:
        return False
    return await is_company_admin(session, viewer_id, subject_company)


def _company_user_ids(company_id: UUID):
    members = select(Membership.user_id).where(Membership.company_id == company_id)
    attached = select(User.id).where(User.company_id == company_id)
    return members, attached


async def list_audit_logs(
    session: AsyncSession,
    viewer_id: UUID,
    company_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    limit: Optional[int] = None,
) -> List[AuditLog]:
    """
    User audit entries filtered by company and/or subject user, newest first.

    Visible to the subject user, admins of the company and global admins.

    Raises:
        ValidationError: If neither filter is given
        PermissionDenied: If the viewer may not see the entries
    """
    if company_id is None and user_id is None:
        raise ValidationError("company_id or user_id is required")
    if not await _can_view(session, viewer_id, company_id, user_id):
        raise PermissionDenied(
            "Audit logs are restricted to company admins and the user themselves",
            context={"viewer_id": str(viewer_id)},
        )

    stmt = select(AuditLog).order_by(AuditLog.created_at.desc())
    if user_id is not None:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if company_id is not None:
        members, attached = _company_user_ids(company_id)
        stmt = stmt.where(or_(AuditLog.user_id.in_(members), AuditLog.user_id.in_(attached)))

    result = await session.execute(stmt.limit(limit or settings.audit_page_limit))
    return list(result.scalars().all())


async def list_admin_audit_logs(
    session: AsyncSession,
    viewer_id: UUID,
    company_id: UUID,
    days_back: Optional[int] = None,
) -> List[AdminAuditLog]:
    """Admin bootstrap/provisioning attempts by the company's users over the last days_back days."""
    if not (await is_global_admin(session, viewer_id) or await is_company_admin(session, viewer_id, company_id)):
        raise PermissionDenied(
            "Admin audit logs are restricted to company admins",
            context={"viewer_id": str(viewer_id), "company_id": str(company_id)},
        )

    since: datetime = _utc_now() - timedelta(days=days_back or settings.admin_audit_days_back)
    members, attached = _company_user_ids(company_id)
    result = await session.execute(
        select(AdminAuditLog)
        .where(
            AdminAuditLog.created_at >= since,
            or_(AdminAuditLog.user_id.in_(members), AdminAuditLog.user_id.in_(attached)),
        )
        .order_by(AdminAuditLog.created_at.desc())
    )
    return list(result.scalars().all())
