"""
Seed data script for local development.

Creates a demo company with an owner, a vehicle, a technician, stocked
parts and one work order, all through the service layer so the
invariant hooks run exactly as they do in production.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from fleetcore.context import SYSTEM_ACTOR, ActorContext
from fleetcore.database import AsyncSessionLocal, init_db
from fleetcore.models import Company, Identity
from fleetcore.security import hash_password
from fleetcore.services import companies, inventory, users, work_orders

DEMO_EMAIL = "owner@acme-fleet.com"


async def seed_database():
    """Create seed data for development."""

    print("🌱 Seeding database with sample data...")

    async with AsyncSessionLocal() as db:
        # Check if data already exists
        if (await db.execute(select(Company))).scalars().first():
            print("⚠️  Database already has data. Skipping seed.")
            return

        print("\n🔑 Creating owner identity and profile...")
        identity = Identity(
            email=DEMO_EMAIL,
            hashed_password=hash_password("password123"),
            raw_metadata={"first_name": "Olive", "last_name": "Owner"},
        )
        db.add(identity)
        await db.commit()
        owner = await users.create_user(
            db, SYSTEM_ACTOR, id=identity.id, email=DEMO_EMAIL, first_name="Olive", last_name="Owner"
        )
        actor = ActorContext(user_id=owner.id)
        print(f"  ✅ Created {owner.email}")

        print("\n📦 Creating company...")
        company = await companies.create_company(
            db, actor, name="Acme Fleet", contact_email=DEMO_EMAIL, subscription_tier="starter"
        )
        print(f"  ✅ Created {company.name} (max {company.max_vehicles} vehicles)")

        print("\n🚚 Creating assets and technicians...")
        truck = await companies.create_vehicle(db, actor, company.id, name="Truck 12", vin="1FTFW1E50NFA00001")
        tech = await companies.create_technician(
            db, actor, company.id, first_name="Tina", last_name="Torque", hourly_rate=Decimal("42.50")
        )
        print(f"  ✅ Created {truck.name} and technician {tech.first_name} {tech.last_name}")

        print("\n🔧 Stocking parts...")
        oil_filter = await inventory.create_part(
            db, actor, company.id, part_number="OF-100", description="Oil filter",
            unit_cost=Decimal("8.75"), quantity_in_stock=25, reorder_point=5,
        )
        print(f"  ✅ Stocked {oil_filter.quantity_in_stock} x {oil_filter.part_number}")

        print("\n📝 Creating work order...")
        order = await work_orders.create_work_order(
            db, actor, company.id, "Oil change", type="maintenance", vehicle_id=truck.id,
        )
        await work_orders.add_part(db, actor, order.id, oil_filter.id, 1)
        start = datetime.now(timezone.utc) - timedelta(hours=1)
        await work_orders.add_labor(db, actor, order.id, tech.id, start_time=start, end_time=start + timedelta(minutes=45))
        order = await work_orders.get_work_order(db, order.id)
        await db.refresh(order)
        print(f"  ✅ {order.title}: parts ${order.parts_cost}, labor ${order.labor_cost}")

    print("\n✨ Seed complete!")


async def main():
    await init_db()
    await seed_database()


if __name__ == "__main__":
    asyncio.run(main())
