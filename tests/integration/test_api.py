"""
Integration tests for the HTTP surface.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

OWNER_EMAIL = "owner@acme-fleet.com"
TEST_PASSWORD = "password123"

pytestmark = pytest.mark.integration


class TestHealth:
    """Test service metadata endpoints."""

    @pytest.mark.asyncio
    async def test_root_and_health(self, client: AsyncClient):
        root = await client.get("/")
        health = await client.get("/health")

        assert root.status_code == 200
        assert root.json()["service"] == "fleetcore"
        assert health.json() == {"status": "healthy"}


class TestAuthEndpoints:
    """Test POST /api/v1/fleet/auth/* endpoints."""

    @pytest.mark.asyncio
    async def test_register_links_company_by_domain(self, company, client: AsyncClient):
        """Test that registration provisions a member profile for a matching domain."""
        company_id = str(company.id)

        response = await client.post(
            "/api/v1/fleet/auth/register",
            json={"email": "newhire@acme-fleet.com", "password": "wrenches99", "first_name": "Nia"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["provisioned"] is True
        assert data["company_id"] == company_id
        assert data["role"] == "member"

        login = await client.post(
            "/api/v1/fleet/auth/login",
            json={"email": "newhire@acme-fleet.com", "password": "wrenches99"},
        )
        assert login.status_code == 200
        me = await client.get(
            "/api/v1/fleet/users/me",
            headers={"Authorization": f"Bearer {login.json()['access_token']}"},
        )
        assert me.status_code == 200
        assert me.json()["first_name"] == "Nia"
        assert me.json()["last_name"] == "User"

    @pytest.mark.asyncio
    async def test_register_without_company(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/fleet/auth/register",
            json={"email": "solo@nowhere.net", "password": "wrenches99"},
        )

        assert response.status_code == 201
        assert response.json()["company_id"] is None
        assert response.json()["role"] == "user"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client: AsyncClient):
        payload = {"email": "twice@nowhere.net", "password": "wrenches99"}
        await client.post("/api/v1/fleet/auth/register", json=payload)

        response = await client.post("/api/v1/fleet/auth/register", json=payload)

        assert response.status_code == 409
        assert "already registered" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, owner, client: AsyncClient):
        response = await client.post(
            "/api/v1/fleet/auth/login",
            json={"email": OWNER_EMAIL, "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert "Incorrect email or password" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_refresh(self, owner, client: AsyncClient):
        """Test that a refresh token yields a new pair and an access token does not."""
        login = await client.post(
            "/api/v1/fleet/auth/login",
            json={"email": OWNER_EMAIL, "password": TEST_PASSWORD},
        )
        tokens = login.json()

        refreshed = await client.post(
            "/api/v1/fleet/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        rejected = await client.post(
            "/api/v1/fleet/auth/refresh", json={"refresh_token": tokens["access_token"]}
        )

        assert refreshed.status_code == 200
        assert "access_token" in refreshed.json()
        assert rejected.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/fleet/users/me", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, client: AsyncClient):
        response = await client.get("/api/v1/fleet/users/me")

        assert response.status_code in (401, 403)


class TestCompanyEndpoints:
    """Test company, vehicle and permission endpoints."""

    @pytest.mark.asyncio
    async def test_create_company_derives_quota(self, outsider, client: AsyncClient, auth_headers):
        """Test that max_vehicles comes from the tier, not the request."""
        headers = auth_headers(outsider)
        outsider_id = str(outsider.id)

        response = await client.post(
            "/api/v1/fleet/companies",
            headers=headers,
            json={"name": "Olga Hauling", "contact_email": "olga@elsewhere.org", "max_vehicles": 500},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["subscription_tier"] == "test_drive"
        assert data["max_vehicles"] == 3
        assert data["owner_id"] == outsider_id

    @pytest.mark.asyncio
    async def test_vehicle_limit_error_body(self, outsider, client: AsyncClient, auth_headers):
        headers = auth_headers(outsider)
        created = await client.post(
            "/api/v1/fleet/companies",
            headers=headers,
            json={"name": "Olga Hauling", "contact_email": "olga@elsewhere.org"},
        )
        company_id = created.json()["id"]
        for number in range(3):
            response = await client.post(
                f"/api/v1/fleet/companies/{company_id}/vehicles", headers=headers, json={"name": f"Van {number}"}
            )
            assert response.status_code == 201

        response = await client.post(
            f"/api/v1/fleet/companies/{company_id}/vehicles", headers=headers, json={"name": "Van 4"}
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "VEHICLE_LIMIT_REACHED"
        assert body["context"]["max_vehicles"] == 3

    @pytest.mark.asyncio
    async def test_permission_check(self, owner, member, company, client: AsyncClient, auth_headers):
        owner_headers, member_headers = auth_headers(owner), auth_headers(member)
        url = f"/api/v1/fleet/companies/{company.id}/permissions/work_orders/delete"

        assert (await client.get(url, headers=owner_headers)).json()["allowed"] is True
        assert (await client.get(url, headers=member_headers)).json()["allowed"] is False

    @pytest.mark.asyncio
    async def test_member_cannot_add_vehicle(self, member, company, client: AsyncClient, auth_headers):
        response = await client.post(
            f"/api/v1/fleet/companies/{company.id}/vehicles",
            headers=auth_headers(member),
            json={"name": "Sneaky Van"},
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"


class TestWorkOrderEndpoints:
    """Test work order, part line and labor endpoints."""

    @pytest.mark.asyncio
    async def test_parts_and_costs(self, owner, work_order, part, client: AsyncClient, auth_headers):
        """Test stock enforcement and derived costs through the API."""
        headers = auth_headers(owner)
        work_order_id, part_id = str(work_order.id), str(part.id)

        short = await client.post(
            f"/api/v1/fleet/work-orders/{work_order_id}/parts",
            headers=headers,
            json={"part_id": part_id, "quantity": 5},
        )
        assert short.status_code == 409
        assert short.json()["error_code"] == "INSUFFICIENT_INVENTORY"
        assert short.json()["context"] == {"part_id": part_id, "requested": 5}

        added = await client.post(
            f"/api/v1/fleet/work-orders/{work_order_id}/parts",
            headers=headers,
            json={"part_id": part_id, "quantity": 2},
        )
        assert added.status_code == 201
        assert Decimal(added.json()["total_cost"]) == Decimal("25.00")

        updated = await client.patch(
            f"/api/v1/fleet/work-orders/{work_order_id}",
            headers=headers,
            json={"parts_cost": "999.00", "status": "in_progress"},
        )
        assert updated.status_code == 200
        assert Decimal(updated.json()["parts_cost"]) == Decimal("25.00")
        assert updated.json()["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_labor_rollup(self, owner, work_order, technician, client: AsyncClient, auth_headers):
        headers = auth_headers(owner)
        work_order_id, technician_id = str(work_order.id), str(technician.id)

        entry = await client.post(
            f"/api/v1/fleet/work-orders/{work_order_id}/labor",
            headers=headers,
            json={"technician_id": technician_id, "start_time": "2025-03-03T08:00:00Z"},
        )
        assert entry.status_code == 201
        assert Decimal(entry.json()["total_cost"]) == Decimal("0")

        closed = await client.post(
            f"/api/v1/fleet/work-orders/labor/{entry.json()['id']}/close",
            headers=headers,
            json={"end_time": "2025-03-03T10:00:00Z"},
        )
        assert closed.status_code == 200
        assert Decimal(closed.json()["total_hours"]) == Decimal("2.00")
        assert Decimal(closed.json()["total_cost"]) == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_invalid_vehicle_reference(self, owner, company, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/fleet/work-orders",
            headers=auth_headers(owner),
            json={
                "company_id": str(company.id),
                "title": "Ghost truck",
                "vehicle_id": "00000000-0000-0000-0000-00000000beef",
            },
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid vehicle ID"

    @pytest.mark.asyncio
    async def test_delete_returns_stock(self, owner, work_order, part, client: AsyncClient, auth_headers):
        headers = auth_headers(owner)
        work_order_id, part_id, company_id = str(work_order.id), str(part.id), str(part.company_id)
        await client.post(
            f"/api/v1/fleet/work-orders/{work_order_id}/parts",
            headers=headers,
            json={"part_id": part_id, "quantity": 3},
        )

        deleted = await client.delete(f"/api/v1/fleet/work-orders/{work_order_id}", headers=headers)
        restocked = await client.post(
            f"/api/v1/fleet/companies/parts/{part_id}/restock", headers=headers, json={"quantity": 1}
        )

        assert deleted.status_code == 204
        assert restocked.json()["quantity_in_stock"] == 4
        assert restocked.json()["company_id"] == company_id


class TestAdminAndAudit:
    """Test admin promotion and audit log endpoints."""

    @pytest.mark.asyncio
    async def test_promote_then_read_admin_log(self, owner, company, client: AsyncClient, auth_headers):
        headers = auth_headers(owner)
        company_id = str(company.id)

        first = await client.post("/api/v1/fleet/admin/promote", headers=headers)
        second = await client.post("/api/v1/fleet/admin/promote", headers=headers)

        assert first.json()["success"] is True
        assert first.json()["company_id"] == company_id
        assert first.json()["role"] == "admin"
        assert second.json()["success"] is False
        assert second.json()["already_admin"] is True

        logs = await client.get(f"/api/v1/fleet/audit/admin-logs/{company_id}", headers=headers)
        assert logs.status_code == 200
        assert [entry["action"] for entry in logs.json()] == ["CREATE_ADMIN", "CREATE_ADMIN"]

    @pytest.mark.asyncio
    async def test_promote_without_company(self, outsider, client: AsyncClient, auth_headers):
        response = await client.post("/api/v1/fleet/admin/promote", headers=auth_headers(outsider))

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "error": "No matching company found",
            "already_admin": False,
            "company_has_admin": False,
            "user_id": None,
            "company_id": None,
            "company_name": None,
            "role": None,
            "preserved_global_admin": None,
        }

    @pytest.mark.asyncio
    async def test_audit_logs_require_filter(self, owner, company, client: AsyncClient, auth_headers):
        headers = auth_headers(owner)
        company_id = str(company.id)

        unfiltered = await client.get("/api/v1/fleet/audit/logs", headers=headers)
        filtered = await client.get(
            "/api/v1/fleet/audit/logs", headers=headers, params={"company_id": company_id}
        )

        assert unfiltered.status_code == 400
        assert filtered.status_code == 200
        assert "CREATE_COMPANY" in {entry["action"] for entry in filtered.json()}
