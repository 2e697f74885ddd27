"""
Provisioning linker.

Creates the User profile for a new Identity and links it to the company
whose contact email shares its domain. Each attempt is its own
transaction; unique-constraint races and lock timeouts are retried with a
linear backoff, and a profile created by a concurrent attempt counts as
success.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import String, func, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetcore import hooks
from fleetcore.config.settings import get_settings
from fleetcore.context import SYSTEM_ACTOR
from fleetcore.database import transaction
from fleetcore.exceptions import FleetCoreError, NotFound, TransientError
from fleetcore.models import Company, Identity, Membership, User
from fleetcore.models.enums import MembershipRole
from fleetcore.services.audit import write_admin_audit_entry, write_audit_entry

logger = logging.getLogger(__name__)

DEFAULT_LAST_NAME = "User"


@dataclass
class ProvisioningResult:
    """Outcome of linking one identity."""

    success: bool
    user_id: UUID
    company_id: Optional[UUID] = None
    role: Optional[str] = None
    created: bool = False
    attempts: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["user_id"] = str(self.user_id)
        data["company_id"] = str(self.company_id) if self.company_id else None
        return data


def email_local_part(email: str) -> str:
    return email.split("@", 1)[0]


def email_domain(email: str) -> Optional[str]:
    if "@" not in email:
        return None
    domain = email.rsplit("@", 1)[1].strip().lower()
    return domain or None


def derive_names(email: str, metadata: Optional[Dict[str, Any]]) -> Tuple[str, str]:
    """first_name/last_name from signup metadata, else email local part / "User"."""
    metadata = metadata or {}
    first_name = (metadata.get("first_name") or "").strip() or email_local_part(email)
    last_name = (metadata.get("last_name") or "").strip() or DEFAULT_LAST_NAME
    return first_name, last_name


async def find_company_by_email_domain(session: AsyncSession, email: str) -> Optional[Company]:
    """Earliest-created company whose contact email has the same domain (case-insensitive)."""
    domain = email_domain(email)
    if domain is None:
        return None

    result = await session.execute(
        select(Company)
        .where(func.lower(Company.contact_email, type_=String).endswith(f"@{domain}", autoescape=True))
        .order_by(Company.created_at, Company.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


class ProvisioningLinker:
    """
    Identity -> User provisioning with bounded retries.

    Usage:
        linker = ProvisioningLinker(AsyncSessionLocal)
        result = await linker.link(identity.id)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_attempts: Optional[int] = None,
        backoff_ms: Optional[int] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.max_attempts = max_attempts or settings.provisioning_max_attempts
        self.backoff_ms = settings.provisioning_backoff_ms if backoff_ms is None else backoff_ms

    async def link(self, identity_id: UUID) -> ProvisioningResult:
        """
        Provision the User row for an identity.

        Never raises: exhausted retries and non-retryable errors are written
        to the admin audit log and returned as success=False.
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._attempt(identity_id, attempt)
            except TransientError as exc:
                last_error = exc
                existing = await self._existing_result(identity_id, attempt)
                if existing is not None:
                    logger.info("User %s was provisioned concurrently", identity_id)
                    return existing
                if attempt < self.max_attempts:
                    delay_ms = self.backoff_ms * attempt
                    logger.warning(
                        "Provisioning attempt %s/%s for %s failed (%s), retrying in %sms",
                        attempt, self.max_attempts, identity_id, exc.message, delay_ms,
                    )
                    await asyncio.sleep(delay_ms / 1000)
            except FleetCoreError as exc:
                logger.error("Provisioning for %s failed: %s", identity_id, exc.message)
                return await self._record_failure(identity_id, attempt, exc)
            except SQLAlchemyError as exc:
                logger.exception("Provisioning for %s hit a database error", identity_id)
                return await self._record_failure(identity_id, attempt, exc)

        logger.error("Provisioning for %s gave up after %s attempts", identity_id, self.max_attempts)
        return await self._record_failure(identity_id, self.max_attempts, last_error)

    async def _attempt(self, identity_id: UUID, attempt: int) -> ProvisioningResult:
        async with self.session_factory() as session:
            try:
                async with transaction(session, SYSTEM_ACTOR):
                    identity = await session.get(Identity, identity_id)
                    if identity is None:
                        raise NotFound(f"Identity {identity_id} not found", context={"identity_id": str(identity_id)})

                    existing = await session.get(User, identity_id)
                    if existing is not None:
                        return ProvisioningResult(
                            success=True,
                            user_id=existing.id,
                            company_id=existing.company_id,
                            role=existing.role,
                            attempts=attempt,
                        )

                    result = await self._create_user(session, identity, attempt)
            except (IntegrityError, OperationalError) as exc:
                raise TransientError(
                    f"Provisioning race for {identity_id}: {exc.orig}",
                    context={"identity_id": str(identity_id), "attempt": attempt},
                ) from exc

        logger.info(
            "Provisioned user %s (company=%s, role=%s) on attempt %s",
            result.user_id, result.company_id, result.role, attempt,
        )
        return result

    async def _create_user(self, session: AsyncSession, identity: Identity, attempt: int) -> ProvisioningResult:
        first_name, last_name = derive_names(identity.email, identity.raw_metadata)
        company = await find_company_by_email_domain(session, identity.email)
        role = MembershipRole.MEMBER.value if company is not None else MembershipRole.USER.value

        user = await hooks.insert(
            session,
            User(
                id=identity.id,
                email=identity.email,
                first_name=first_name,
                last_name=last_name,
                role=role,
                company_id=company.id if company is not None else None,
            ),
        )

        if company is not None:
            await hooks.insert(session, Membership(user_id=user.id, company_id=company.id, role=role))
            await write_audit_entry(
                session,
                user.id,
                "AUTO_COMPANY_LINK",
                {
                    "company_id": str(company.id),
                    "company_name": company.name,
                    "email_domain": email_domain(identity.email),
                    "role": role,
                },
            )

        await write_audit_entry(
            session,
            user.id,
            "CREATE_USER",
            {
                "email": identity.email,
                "first_name": first_name,
                "last_name": last_name,
                "company_id": str(company.id) if company is not None else None,
                "role": role,
                "retry_count": attempt - 1,
            },
        )

        return ProvisioningResult(
            success=True,
            user_id=user.id,
            company_id=company.id if company is not None else None,
            role=role,
            created=True,
            attempts=attempt,
        )

    async def _existing_result(self, identity_id: UUID, attempt: int) -> Optional[ProvisioningResult]:
        try:
            async with self.session_factory() as session:
                user = await session.get(User, identity_id)
                if user is None:
                    return None
                return ProvisioningResult(
                    success=True,
                    user_id=user.id,
                    company_id=user.company_id,
                    role=user.role,
                    attempts=attempt,
                )
        except OperationalError as exc:
            logger.warning("Could not check for existing user %s: %s", identity_id, exc)
            return None

    async def _record_failure(
        self, identity_id: UUID, attempts: int, error: Optional[Exception]
    ) -> ProvisioningResult:
        message = getattr(error, "message", None) or str(error or "unknown error")
        try:
            async with self.session_factory() as session:
                async with transaction(session, SYSTEM_ACTOR):
                    await write_admin_audit_entry(
                        session,
                        identity_id,
                        "PROVISION_USER",
                        success=False,
                        details={"attempts": attempts},
                        error_message=message,
                    )
        except Exception as exc:
            logger.warning("Could not record provisioning failure for %s: %s", identity_id, exc)

        return ProvisioningResult(
            success=False,
            user_id=identity_id,
            attempts=attempts,
            error=message,
        )
