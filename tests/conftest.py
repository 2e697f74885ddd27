"""
Pytest configuration and fixtures for fleet core tests.

Provides fixtures for:
- Database engine, session factory and session
- Test client
- Users, a company with assets, technicians, parts and a work order
- JWT auth headers
"""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.api.auth import get_provisioning_linker
from fleetcore.context import SYSTEM_ACTOR, ActorContext
from fleetcore.database import build_engine, build_session_factory, drop_db, get_db, init_db
from fleetcore.main import app
from fleetcore.models import Company, Equipment, Identity, PartsInventory, Technician, User, Vehicle, WorkOrder
from fleetcore.security import create_access_token, hash_password
from fleetcore.services import companies as company_service
from fleetcore.services import inventory as inventory_service
from fleetcore.services import users as user_service
from fleetcore.services import work_orders as work_order_service
from fleetcore.services.provisioning import ProvisioningLinker

TEST_PASSWORD = "password123"
OWNER_EMAIL = "owner@acme-fleet.com"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-based SQLite so separate sessions see each other's commits."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'fleet_test.sqlite'}")
    await init_db(engine)

    yield engine

    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(test_db: AsyncSession):
    """Factory creating an Identity plus its User profile, bypassing provisioning."""

    async def _make_user(email: str, first_name: str = "Test", last_name: str = "User", **fields) -> User:
        identity = Identity(email=email, hashed_password=hash_password(TEST_PASSWORD))
        test_db.add(identity)
        await test_db.commit()
        return await user_service.create_user(
            test_db,
            SYSTEM_ACTOR,
            id=identity.id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            **fields,
        )

    return _make_user


@pytest_asyncio.fixture
async def owner(make_user) -> User:
    return await make_user(OWNER_EMAIL, first_name="Olive", last_name="Owner")


@pytest.fixture
def owner_actor(owner: User) -> ActorContext:
    return ActorContext(user_id=owner.id)


@pytest_asyncio.fixture
async def company(test_db: AsyncSession, owner_actor: ActorContext) -> Company:
    """Starter-tier company owned by the owner fixture."""
    return await company_service.create_company(
        test_db,
        owner_actor,
        name="Acme Fleet",
        contact_email=OWNER_EMAIL,
        subscription_tier="starter",
    )


@pytest_asyncio.fixture
async def member(test_db: AsyncSession, make_user, company: Company, owner_actor: ActorContext) -> User:
    """Plain member of the company with no grants."""
    user = await make_user("mike@acme-fleet.com", first_name="Mike", last_name="Member")
    await user_service.add_member(test_db, owner_actor, company.id, user.id, "member")
    return user


@pytest_asyncio.fixture
async def outsider(make_user) -> User:
    return await make_user("olga@elsewhere.org", first_name="Olga", last_name="Outsider")


@pytest_asyncio.fixture
async def vehicle(test_db: AsyncSession, owner_actor: ActorContext, company: Company) -> Vehicle:
    return await company_service.create_vehicle(test_db, owner_actor, company.id, name="Truck 12")


@pytest_asyncio.fixture
async def equipment(test_db: AsyncSession, owner_actor: ActorContext, company: Company) -> Equipment:
    return await company_service.create_equipment(test_db, owner_actor, company.id, name="Generator 3")


@pytest_asyncio.fixture
async def technician(test_db: AsyncSession, owner_actor: ActorContext, company: Company) -> Technician:
    return await company_service.create_technician(
        test_db, owner_actor, company.id, first_name="Tina", last_name="Torque", hourly_rate=Decimal("40.00")
    )


@pytest_asyncio.fixture
async def part(test_db: AsyncSession, owner_actor: ActorContext, company: Company) -> PartsInventory:
    """Oil filter with three units in stock."""
    return await inventory_service.create_part(
        test_db,
        owner_actor,
        company.id,
        part_number="OF-100",
        description="Oil filter",
        unit_cost=Decimal("12.50"),
        quantity_in_stock=3,
    )


@pytest_asyncio.fixture
async def work_order(
    test_db: AsyncSession, owner_actor: ActorContext, company: Company, vehicle: Vehicle
) -> WorkOrder:
    return await work_order_service.create_work_order(
        test_db, owner_actor, company.id, "Replace brake pads", vehicle_id=vehicle.id
    )


@pytest.fixture
def auth_headers():
    """Factory for Bearer headers; the user id doubles as the identity id."""

    def _auth_headers(user: User) -> dict:
        token = create_access_token(user_id=user.id, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database session and linker overrides."""

    async def override_get_db():
        yield test_db

    def override_get_provisioning_linker():
        return ProvisioningLinker(session_factory, backoff_ms=0)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provisioning_linker] = override_get_provisioning_linker

    # Release the SQLite write lock held by fixture reads
    await test_db.commit()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
