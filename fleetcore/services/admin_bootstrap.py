"""
Admin bootstrap workflow.

promote_to_admin() makes the caller the admin of the company registered
with their email address:

1. Caller already admin somewhere -> already_admin, nothing changes
2. No company with contact_email == caller email -> failure
3. Company already has an admin -> company_has_admin, nothing changes
4. Upsert user (is_global_admin untouched), upsert admin membership,
   grant all 32 resource/action permissions to the admin role
5. Every branch writes one CREATE_ADMIN row to the admin audit log

Expected outcomes are returned, never raised. The company row is read
FOR UPDATE and admin memberships are unique per company, so of two
concurrent promotions exactly one succeeds.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore import hooks
from fleetcore.context import ActorContext, set_actor
from fleetcore.database_upsert import upsert_insert
from fleetcore.exceptions import CompanyAlreadyHasAdmin, NoMatchingCompany
from fleetcore.models import Company, Identity, Membership, RolePermission, User
from fleetcore.models.base import _utc_now
from fleetcore.models.enums import Action, MembershipRole, Resource
from fleetcore.services.audit import write_admin_audit_entry, write_audit_entry
from fleetcore.services.provisioning import email_local_part

logger = logging.getLogger(__name__)

ADMIN_ROLE = MembershipRole.ADMIN.value
ADMIN_LAST_NAME = "Admin"
ADMIN_GRANTS = [(resource.value, action.value) for resource in Resource for action in Action]


@dataclass
class PromotionResult:
    """Structured outcome of promote_to_admin()."""

    success: bool
    error: Optional[str] = None
    already_admin: bool = False
    company_has_admin: bool = False
    user_id: Optional[UUID] = None
    company_id: Optional[UUID] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    preserved_global_admin: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.already_admin:
            data["already_admin"] = True
        if self.company_has_admin:
            data["company_has_admin"] = True
        if self.success:
            data.update({
                "user_id": str(self.user_id),
                "company_id": str(self.company_id),
                "company_name": self.company_name,
                "role": self.role,
                "preserved_global_admin": self.preserved_global_admin,
            })
        return data


def _already_admin() -> PromotionResult:
    return PromotionResult(success=False, error="User is already an admin", already_admin=True)


def _company_has_admin() -> PromotionResult:
    return PromotionResult(success=False, error="Company already has an admin", company_has_admin=True)


async def holds_admin_role(session: AsyncSession, user_id: UUID) -> bool:
    membership_id = await session.scalar(
        select(Membership.id).where(Membership.user_id == user_id, Membership.role == ADMIN_ROLE).limit(1)
    )
    return membership_id is not None


async def company_has_admin(session: AsyncSession, company_id: UUID) -> bool:
    membership_id = await session.scalar(
        select(Membership.id).where(Membership.company_id == company_id, Membership.role == ADMIN_ROLE).limit(1)
    )
    return membership_id is not None


async def grant_admin_permissions(session: AsyncSession, company_id: UUID) -> None:
    """Upsert the full resource x action grant set for the admin role."""
    now = _utc_now()
    rows = [
        {
            "id": uuid4(),
            "company_id": company_id,
            "role": ADMIN_ROLE,
            "resource": resource,
            "action": action,
            "created_at": now,
            "updated_at": now,
        }
        for resource, action in ADMIN_GRANTS
    ]
    stmt = upsert_insert(session, RolePermission).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["company_id", "role", "resource", "action"],
        set_={"updated_at": stmt.excluded.updated_at},
    )
    await session.execute(stmt)


async def _upsert_admin_user(session: AsyncSession, identity: Identity, company: Company) -> User:
    user = await session.get(User, identity.id)
    if user is not None:
        return await hooks.update(session, user, {"role": ADMIN_ROLE, "company_id": company.id})

    metadata = identity.raw_metadata or {}
    return await hooks.insert(
        session,
        User(
            id=identity.id,
            email=identity.email,
            first_name=(metadata.get("first_name") or "").strip() or email_local_part(identity.email),
            last_name=ADMIN_LAST_NAME,
            role=ADMIN_ROLE,
            status="active",
            company_id=company.id,
        ),
    )


async def _upsert_admin_membership(session: AsyncSession, user_id: UUID, company_id: UUID) -> None:
    now = _utc_now()
    stmt = upsert_insert(session, Membership).values(
        id=uuid4(),
        user_id=user_id,
        company_id=company_id,
        role=ADMIN_ROLE,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "company_id"],
        set_={"role": ADMIN_ROLE, "updated_at": now},
    )
    await session.execute(stmt)


async def _promote(session: AsyncSession, caller_user_id: UUID, audit: Dict[str, Any]) -> PromotionResult:
    identity = await session.get(Identity, caller_user_id)
    if identity is None:
        return PromotionResult(success=False, error="User not found")
    email = identity.email
    audit["email"] = email

    if await holds_admin_role(session, caller_user_id):
        return _already_admin()

    company = (
        await session.execute(
            select(Company)
            .where(Company.contact_email == email)
            .order_by(Company.created_at, Company.id)
            .limit(1)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if company is None:
        raise NoMatchingCompany("No matching company found", context={"email": email})
    audit["company_id"] = str(company.id)

    if await company_has_admin(session, company.id):
        return _company_has_admin()

    user = await _upsert_admin_user(session, identity, company)
    try:
        await _upsert_admin_membership(session, user.id, company.id)
    except IntegrityError as exc:
        # Lost the race for the company's single admin slot
        raise CompanyAlreadyHasAdmin("Company already has an admin") from exc
    await grant_admin_permissions(session, company.id)

    result = PromotionResult(
        success=True,
        user_id=user.id,
        company_id=company.id,
        company_name=company.name,
        role=ADMIN_ROLE,
        preserved_global_admin=user.is_global_admin,
    )
    await write_audit_entry(
        session,
        user.id,
        "MAKE_ADMIN",
        {
            "email": email,
            "company_id": str(company.id),
            "company_name": company.name,
            "preserved_global_admin": user.is_global_admin,
        },
    )
    await write_audit_entry(
        session,
        user.id,
        "SETUP_ADMIN_PERMISSIONS",
        {"company_id": str(company.id), "grants": len(ADMIN_GRANTS)},
    )
    return result


def _timing(started_at: datetime, started: float) -> Dict[str, Any]:
    return {
        "start_time": started_at.isoformat(),
        "end_time": _utc_now().isoformat(),
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
    }


async def promote_to_admin(session: AsyncSession, caller_user_id: UUID) -> PromotionResult:
    """
    Promote the caller to admin of the company registered with their email.

    Args:
        session: Database session, not inside a transaction
        caller_user_id: Authenticated caller (Identity/User id)

    Returns:
        PromotionResult; expected outcomes (already admin, no matching
        company, company has admin) come back as success=False with the
        matching flag, unexpected errors as success=False with the message
    """
    started_at, started = _utc_now(), time.perf_counter()
    audit: Dict[str, Any] = {}
    set_actor(session, ActorContext(user_id=caller_user_id))
    logger.info("Admin bootstrap requested by %s", caller_user_id)

    try:
        result = await _promote(session, caller_user_id, audit)
        if result.success:
            await session.flush()
        else:
            await session.rollback()
    except NoMatchingCompany as exc:
        await session.rollback()
        result = PromotionResult(success=False, error=exc.message)
    except (CompanyAlreadyHasAdmin, IntegrityError):
        await session.rollback()
        result = _company_has_admin()
    except Exception as exc:
        logger.exception("Admin bootstrap for %s failed", caller_user_id)
        await session.rollback()
        result = PromotionResult(success=False, error=str(exc))

    details = {
        **audit,
        **_timing(started_at, started),
        "already_admin": result.already_admin,
        "company_has_admin": result.company_has_admin,
    }
    try:
        await write_admin_audit_entry(
            session,
            caller_user_id,
            "CREATE_ADMIN",
            success=result.success,
            details=details,
            error_message=result.error,
        )
        await session.commit()
    except Exception as exc:
        logger.exception("Admin bootstrap for %s could not be committed", caller_user_id)
        await session.rollback()
        result = PromotionResult(success=False, error=str(exc))
        await write_admin_audit_entry(
            session,
            caller_user_id,
            "CREATE_ADMIN",
            success=False,
            details={**details, "commit_failed": True},
            error_message=result.error,
        )
        await session.commit()

    logger.info(
        "Admin bootstrap for %s: success=%s already_admin=%s company_has_admin=%s",
        caller_user_id, result.success, result.already_admin, result.company_has_admin,
    )
    return result
