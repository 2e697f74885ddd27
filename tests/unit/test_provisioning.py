"""
Unit tests for the provisioning linker.
"""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, ProgrammingError

from fleetcore.context import ActorContext
from fleetcore.models import AdminAuditLog, AuditLog, Identity, Membership, User
from fleetcore.services import companies as company_service
from fleetcore.services.provisioning import (
    ProvisioningLinker,
    derive_names,
    email_domain,
    find_company_by_email_domain,
)

pytestmark = pytest.mark.unit


async def new_identity(session, email: str, **metadata):
    identity = Identity(email=email, raw_metadata=metadata or None)
    session.add(identity)
    await session.commit()
    return identity.id


@pytest.fixture
def linker(session_factory) -> ProvisioningLinker:
    return ProvisioningLinker(session_factory, max_attempts=3, backoff_ms=0)


class TestHelpers:
    """Name and domain derivation."""

    def test_email_domain(self):
        assert email_domain("Jane@Acme-Fleet.COM") == "acme-fleet.com"
        assert email_domain("no-at-sign") is None
        assert email_domain("trailing@") is None

    def test_names_from_metadata(self):
        assert derive_names("jd@x.io", {"first_name": "Jane", "last_name": "Doe"}) == ("Jane", "Doe")

    def test_names_fallback(self):
        assert derive_names("jane.doe@x.io", None) == ("jane.doe", "User")
        assert derive_names("jane.doe@x.io", {"first_name": "  ", "last_name": ""}) == ("jane.doe", "User")

    @pytest.mark.asyncio
    async def test_lookalike_domain_not_matched(self, test_db, outsider):
        """Test that only the exact domain after @ matches."""
        await company_service.create_company(
            test_db, ActorContext(user_id=outsider.id), name="Not Acme", contact_email="ops@notacme-fleet.com"
        )

        assert await find_company_by_email_domain(test_db, "jane@acme-fleet.com") is None


class TestLink:
    """Identity -> User provisioning and company linking."""

    @pytest.mark.asyncio
    async def test_links_to_company_by_domain(self, test_db, linker, company):
        """Test that a matching domain makes the new user a company member."""
        company_id = company.id
        identity_id = await new_identity(test_db, "newhire@acme-fleet.com", first_name="Nia", last_name="Hire")

        result = await linker.link(identity_id)

        assert result.success and result.created
        assert result.company_id == company_id
        assert result.role == "member"
        assert result.attempts == 1

        user = await test_db.get(User, identity_id)
        assert (user.first_name, user.last_name, user.company_id) == ("Nia", "Hire", company_id)
        role = await test_db.scalar(
            select(Membership.role).where(Membership.user_id == identity_id, Membership.company_id == company_id)
        )
        assert role == "member"

        actions = set(
            (await test_db.execute(select(AuditLog.action).where(AuditLog.user_id == identity_id))).scalars()
        )
        assert {"INSERT", "AUTO_COMPANY_LINK", "CREATE_USER"} <= actions

    @pytest.mark.asyncio
    async def test_domain_match_is_case_insensitive(self, test_db, linker, company):
        company_id = company.id
        identity_id = await new_identity(test_db, "Boss@ACME-Fleet.com")

        result = await linker.link(identity_id)

        assert result.company_id == company_id

    @pytest.mark.asyncio
    async def test_earliest_company_wins(self, test_db, linker, company, outsider):
        """Test that with several companies on one domain the oldest is chosen."""
        company_id = company.id
        await company_service.create_company(
            test_db, ActorContext(user_id=outsider.id), name="Acme Billing", contact_email="billing@acme-fleet.com"
        )
        identity_id = await new_identity(test_db, "newhire@acme-fleet.com")

        result = await linker.link(identity_id)

        assert result.company_id == company_id

    @pytest.mark.asyncio
    async def test_no_matching_company(self, test_db, linker, company):
        """Test that unmatched users get an unattached profile with role user."""
        identity_id = await new_identity(test_db, "solo@nowhere.net")

        result = await linker.link(identity_id)

        assert result.success
        assert result.company_id is None
        assert result.role == "user"
        user = await test_db.get(User, identity_id)
        assert (user.first_name, user.last_name) == ("solo", "User")
        memberships = await test_db.scalar(select(func.count(Membership.id)).where(Membership.user_id == identity_id))
        assert memberships == 0

    @pytest.mark.asyncio
    async def test_existing_user_is_success(self, test_db, linker, owner):
        """Test that linking an already provisioned identity is a no-op success."""
        owner_id = owner.id
        await test_db.commit()

        result = await linker.link(owner_id)

        assert result.success
        assert result.created is False
        users = await test_db.scalar(select(func.count(User.id)).where(User.id == owner_id))
        assert users == 1

    @pytest.mark.asyncio
    async def test_missing_identity_recorded(self, test_db, linker):
        """Test that a non-retryable failure is returned and written to the admin log."""
        identity_id = uuid4()

        result = await linker.link(identity_id)

        assert result.success is False
        assert "not found" in result.error
        entry = (
            await test_db.execute(select(AdminAuditLog).where(AdminAuditLog.user_id == identity_id))
        ).scalar_one()
        assert entry.action == "PROVISION_USER"
        assert entry.success is False


class TestRetries:
    """Transient failures are retried with backoff up to max_attempts."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, test_db, linker, company, monkeypatch):
        """Test that a lock timeout on the first attempt is retried and succeeds."""
        identity_id = await new_identity(test_db, "retry@acme-fleet.com")
        original = ProvisioningLinker._create_user
        calls = []

        async def flaky(self, session, identity, attempt):
            calls.append(attempt)
            if attempt == 1:
                raise OperationalError("INSERT INTO users", {}, Exception("database is locked"))
            return await original(self, session, identity, attempt)

        monkeypatch.setattr(ProvisioningLinker, "_create_user", flaky)

        result = await linker.link(identity_id)

        assert result.success
        assert result.attempts == 2
        assert calls == [1, 2]
        details = await test_db.scalar(
            select(AuditLog.details).where(AuditLog.user_id == identity_id, AuditLog.action == "CREATE_USER")
        )
        assert details["retry_count"] == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, test_db, linker, monkeypatch):
        """Test that exhausted retries are reported and audited, never raised."""
        identity_id = await new_identity(test_db, "unlucky@acme-fleet.com")

        async def always_locked(self, session, identity, attempt):
            raise OperationalError("INSERT INTO users", {}, Exception("database is locked"))

        monkeypatch.setattr(ProvisioningLinker, "_create_user", always_locked)

        result = await linker.link(identity_id)

        assert result.success is False
        assert result.attempts == 3
        assert "database is locked" in result.error
        assert await test_db.get(User, identity_id) is None
        entry = (
            await test_db.execute(select(AdminAuditLog).where(AdminAuditLog.user_id == identity_id))
        ).scalar_one()
        assert entry.details == {"attempts": 3}

    @pytest.mark.asyncio
    async def test_concurrent_links_create_one_user(self, test_db, linker, company):
        """Test that racing links for one identity both succeed with a single profile."""
        identity_id = await new_identity(test_db, "racer@acme-fleet.com")

        results = await asyncio.gather(linker.link(identity_id), linker.link(identity_id))

        assert all(result.success for result in results)
        assert sorted(result.created for result in results) == [False, True]
        users = await test_db.scalar(select(func.count(User.id)).where(User.id == identity_id))
        assert users == 1

    @pytest.mark.asyncio
    async def test_non_transient_database_error_recorded(self, test_db, linker, monkeypatch):
        """Test that a non-retryable database error is recorded once and returned."""
        identity_id = await new_identity(test_db, "broken@acme-fleet.com")
        calls = []

        async def bad_sql(self, session, identity, attempt):
            calls.append(attempt)
            raise ProgrammingError("INSERT INTO users", {}, Exception("relation does not exist"))

        monkeypatch.setattr(ProvisioningLinker, "_create_user", bad_sql)

        result = await linker.link(identity_id)

        assert result.success is False
        assert calls == [1]
        assert "relation does not exist" in result.error
        entry = (
            await test_db.execute(select(AdminAuditLog).where(AdminAuditLog.user_id == identity_id))
        ).scalar_one()
        assert entry.action == "PROVISION_USER"
        assert entry.details == {"attempts": 1}
