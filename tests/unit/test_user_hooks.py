"""
Unit tests for user hooks and the audit writer they feed.
"""

import logging

import pytest
from sqlalchemy import select

from fleetcore.context import SYSTEM_ACTOR, ActorContext
from fleetcore.exceptions import PermissionDenied
from fleetcore.models import AuditLog, Membership, User
from fleetcore.services import audit as audit_service
from fleetcore.services import users as user_service

pytestmark = pytest.mark.unit


async def audit_entries(session, user_id, action):
    result = await session.execute(
        select(AuditLog).where(AuditLog.user_id == user_id, AuditLog.action == action)
    )
    return result.scalars().all()


class TestGlobalAdminGuard:
    """Only the platform-admin actor may flip is_global_admin."""

    @pytest.mark.asyncio
    async def test_user_cannot_promote_self(self, test_db, owner):
        """Test that a user editing their own profile cannot grant global admin."""
        owner_id = owner.id

        with pytest.raises(PermissionDenied):
            await user_service.update_user(
                test_db, ActorContext(user_id=owner_id), owner_id, {"is_global_admin": True}
            )

        flag = await test_db.scalar(select(User.is_global_admin).where(User.id == owner_id))
        assert flag is False

    @pytest.mark.asyncio
    async def test_platform_admin_can_grant_and_revoke(self, test_db, owner):
        """Test that the system actor may set and clear the flag."""
        user = await user_service.update_user(test_db, SYSTEM_ACTOR, owner.id, {"is_global_admin": True})
        assert user.is_global_admin is True

        user = await user_service.update_user(test_db, SYSTEM_ACTOR, owner.id, {"is_global_admin": False})
        assert user.is_global_admin is False

    @pytest.mark.asyncio
    async def test_platform_admin_recognised_by_email(self, test_db, owner):
        """Test that an authenticated platform-admin identity carries the privilege."""
        actor = ActorContext.for_user(owner.id, "System@EquipTrack.ai")
        assert actor.is_platform_admin

        user = await user_service.update_user(test_db, actor, owner.id, {"is_global_admin": True})
        assert user.is_global_admin is True

    @pytest.mark.asyncio
    async def test_create_with_flag_requires_platform_admin(self, test_db, owner):
        """Test that a non-platform actor cannot create a global admin."""
        actor = ActorContext(user_id=owner.id)

        with pytest.raises(PermissionDenied):
            await user_service.create_user(
                test_db, actor, email="sneaky@acme-fleet.com", first_name="S", last_name="N", is_global_admin=True
            )

    @pytest.mark.asyncio
    async def test_unchanged_flag_passes(self, test_db, make_user):
        """Test that editing other fields of a global admin needs no special actor."""
        admin = await make_user("root@acme-fleet.com", is_global_admin=True)

        user = await user_service.update_user(
            test_db, ActorContext(user_id=admin.id), admin.id, {"first_name": "Rooty"}
        )

        assert user.first_name == "Rooty"
        assert user.is_global_admin is True


class TestUserUpdates:
    """Authorization and updated_at on profile edits."""

    @pytest.mark.asyncio
    async def test_updated_at_refreshed(self, test_db, owner):
        """Test that any update bumps updated_at."""
        before = owner.updated_at

        user = await user_service.update_user(
            test_db, ActorContext(user_id=owner.id), owner.id, {"last_name": "Owens"}
        )

        assert user.updated_at > before

    @pytest.mark.asyncio
    async def test_company_move_requires_platform_admin(self, test_db, member, company):
        """Test that users cannot attach themselves to a company."""
        member_id, company_id = member.id, company.id

        with pytest.raises(PermissionDenied):
            await user_service.update_user(
                test_db, ActorContext(user_id=member_id), member_id, {"company_id": company_id}
            )

    @pytest.mark.asyncio
    async def test_company_user_editable_by_owner(self, test_db, owner_actor, member, company):
        """Test that users:edit in the user's company allows editing them."""
        await user_service.update_user(test_db, SYSTEM_ACTOR, member.id, {"company_id": company.id})

        user = await user_service.update_user(test_db, owner_actor, member.id, {"status": "inactive"})

        assert user.status == "inactive"

    @pytest.mark.asyncio
    async def test_unattached_user_not_editable_by_others(self, test_db, owner_actor, outsider):
        """Test that users outside any company can only be edited by themselves."""
        outsider_id = outsider.id

        with pytest.raises(PermissionDenied):
            await user_service.update_user(test_db, owner_actor, outsider_id, {"first_name": "Hacked"})


class TestUserAudit:
    """Every user row change leaves an audit entry with before/after images."""

    @pytest.mark.asyncio
    async def test_insert_audited(self, test_db, owner):
        """Test that user creation records the new row and the system actor."""
        (entry,) = await audit_entries(test_db, owner.id, "INSERT")

        assert entry.details["operation"] == "INSERT"
        assert entry.details["is_platform_admin"] is True
        assert entry.details["new_data"]["email"] == owner.email
        assert "old_data" not in entry.details

    @pytest.mark.asyncio
    async def test_update_audited(self, test_db, owner):
        """Test that updates record both images and the acting user."""
        await user_service.update_user(test_db, ActorContext(user_id=owner.id), owner.id, {"first_name": "Liv"})

        (entry,) = await audit_entries(test_db, owner.id, "UPDATE")
        assert entry.details["old_data"]["first_name"] == "Olive"
        assert entry.details["new_data"]["first_name"] == "Liv"
        assert entry.details["is_platform_admin"] is False
        assert entry.performed_by == owner.id

    @pytest.mark.asyncio
    async def test_delete_audited_after_row_is_gone(self, test_db, member):
        """Test that a deleted user's history survives the user row."""
        member_id = member.id

        await user_service.delete_user(test_db, ActorContext(user_id=member_id), member_id)

        assert await test_db.get(User, member_id) is None
        memberships = await test_db.scalar(select(Membership.id).where(Membership.user_id == member_id))
        assert memberships is None
        (entry,) = await audit_entries(test_db, member_id, "DELETE")
        assert entry.details["old_data"]["email"] == "mike@acme-fleet.com"

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_abort_mutation(self, test_db, owner, monkeypatch, caplog):
        """Test that a failing audit insert is logged and the user update still commits."""
        owner_id = owner.id
        real_audit_log = audit_service.AuditLog

        def broken_audit_log(**fields):
            return real_audit_log(**{**fields, "performed_by": None})

        monkeypatch.setattr(audit_service, "AuditLog", broken_audit_log)

        with caplog.at_level(logging.WARNING, logger="fleetcore.services.audit"):
            user = await user_service.update_user(
                test_db, ActorContext(user_id=owner_id), owner_id, {"first_name": "Still"}
            )

        assert user.first_name == "Still"
        assert "Audit log write failed" in caplog.text
        assert await audit_entries(test_db, owner_id, "UPDATE") == []
        stored = await test_db.scalar(select(User.first_name).where(User.id == owner_id))
        assert stored == "Still"
