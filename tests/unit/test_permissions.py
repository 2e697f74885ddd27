"""
Unit tests for the permission evaluator.
"""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import SYSTEM_ACTOR, ActorContext
from fleetcore.exceptions import PermissionDenied, ValidationError
from fleetcore.models import RolePermission
from fleetcore.models.enums import Action, Resource
from fleetcore.services.permissions import (
    has_inventory_permission,
    has_permission,
    is_company_admin,
    is_global_admin,
    require_permission,
)

pytestmark = pytest.mark.unit


async def grant(session: AsyncSession, company_id, role: str, resource: str, action: str) -> None:
    session.add(RolePermission(company_id=company_id, role=role, resource=resource, action=action))
    await session.commit()


class TestHasPermission:
    """Owner shortcut, membership role lookup and grant matching."""

    @pytest.mark.asyncio
    async def test_owner_has_every_permission(self, test_db, owner, company):
        """Test that the company owner passes every resource/action pair without grants."""
        for resource in Resource:
            for action in Action:
                assert await has_permission(test_db, owner.id, company.id, resource, action)

    @pytest.mark.asyncio
    async def test_member_without_grant_denied(self, test_db, member, company):
        """Test that membership alone grants nothing."""
        assert not await has_permission(test_db, member.id, company.id, "vehicles", "view")

    @pytest.mark.asyncio
    async def test_member_with_matching_grant(self, test_db, member, company):
        """Test that a grant for the member's role applies to exactly that pair."""
        await grant(test_db, company.id, "member", "vehicles", "view")

        assert await has_permission(test_db, member.id, company.id, "vehicles", "view")
        assert not await has_permission(test_db, member.id, company.id, "vehicles", "edit")
        assert not await has_permission(test_db, member.id, company.id, "work_orders", "view")

    @pytest.mark.asyncio
    async def test_grant_for_other_role_ignored(self, test_db, member, company):
        """Test that grants are matched on the member's role."""
        await grant(test_db, company.id, "admin", "vehicles", "view")

        assert not await has_permission(test_db, member.id, company.id, "vehicles", "view")

    @pytest.mark.asyncio
    async def test_non_member_denied(self, test_db, outsider, company):
        """Test that users outside the company are denied even with grants present."""
        await grant(test_db, company.id, "member", "vehicles", "view")

        assert not await has_permission(test_db, outsider.id, company.id, "vehicles", "view")

    @pytest.mark.asyncio
    async def test_unknown_company_denied(self, test_db, owner):
        """Test that a missing company yields False, not an error."""
        assert not await has_permission(test_db, owner.id, uuid4(), "vehicles", "view")

    @pytest.mark.asyncio
    async def test_anonymous_denied(self, test_db, company):
        """Test that a missing user id is never allowed."""
        assert not await has_permission(test_db, None, company.id, "vehicles", "view")

    @pytest.mark.asyncio
    async def test_unknown_resource_rejected(self, test_db, owner, company):
        """Test that values outside the fixed catalog raise ValidationError."""
        with pytest.raises(ValidationError):
            await has_permission(test_db, owner.id, company.id, "spaceships", "view")

        with pytest.raises(ValidationError):
            await has_permission(test_db, owner.id, company.id, "vehicles", "launch")

    @pytest.mark.asyncio
    async def test_inventory_permission(self, test_db, member, company):
        """Test that has_inventory_permission checks the parts_inventory resource."""
        assert not await has_inventory_permission(test_db, member.id, company.id, "edit")

        await grant(test_db, company.id, "member", "parts_inventory", "edit")

        assert await has_inventory_permission(test_db, member.id, company.id, "edit")


class TestAdminChecks:
    """Global and company admin predicates."""

    @pytest.mark.asyncio
    async def test_global_admin_flag(self, test_db, make_user, owner):
        """Test that is_global_admin reads the user flag."""
        admin = await make_user("root@equiptrack.ai", is_global_admin=True)

        assert await is_global_admin(test_db, admin.id)
        assert not await is_global_admin(test_db, owner.id)
        assert not await is_global_admin(test_db, None)

    @pytest.mark.asyncio
    async def test_company_admin(self, test_db, owner, member, company):
        """Test that the owner is a company admin and a plain member is not."""
        assert await is_company_admin(test_db, owner.id, company.id)
        assert not await is_company_admin(test_db, member.id, company.id)


class TestRequirePermission:
    """Authorization gate used by service mutations."""

    @pytest.mark.asyncio
    async def test_platform_admin_passes(self, test_db, company):
        """Test that the platform-admin actor bypasses RBAC."""
        await require_permission(test_db, SYSTEM_ACTOR, company.id, Resource.SETTINGS, Action.DELETE)

    @pytest.mark.asyncio
    async def test_denied_raises(self, test_db, member, company):
        """Test that a failed check raises PermissionDenied with the missing pair."""
        with pytest.raises(PermissionDenied) as exc_info:
            await require_permission(
                test_db, ActorContext(user_id=member.id), company.id, "work_orders", "delete"
            )

        assert exc_info.value.status_code == 403
        assert "work_orders:delete" in exc_info.value.message
