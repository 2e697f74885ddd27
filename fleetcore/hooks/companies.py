"""
Company invariant hooks.

- Quota derivation: max_vehicles comes from the subscription tier only
- Owner membership, default taxonomy catalog and CREATE_COMPANY audit on insert
- Vehicle capacity check on vehicle insert
"""

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.database_upsert import upsert_insert
from fleetcore.exceptions import ConflictError, NotFound, ValidationError
from fleetcore.hooks.registry import INSERT, UPDATE, insert, registry
from fleetcore.models import Company, CompanySetting, Membership, Vehicle
from fleetcore.models.base import _utc_now
from fleetcore.models.enums import MembershipRole, SubscriptionTier
from fleetcore.services.audit import write_audit_entry

logger = logging.getLogger(__name__)

TIER_VEHICLE_LIMITS: Dict[str, int] = {
    SubscriptionTier.TEST_DRIVE.value: 3,
    SubscriptionTier.STARTER.value: 10,
    SubscriptionTier.STANDARD.value: 50,
    SubscriptionTier.PROFESSIONAL.value: 250,
}
DEFAULT_VEHICLE_LIMIT = 3

# (setting_type, name, value, description); sort_order follows list order
DEFAULT_COMPANY_SETTINGS: Dict[str, List[Tuple[str, str, str]]] = {
    "vehicle_type": [
        ("Truck", "truck", "Heavy-duty trucks and semi-trucks"),
        ("Van", "van", "Delivery and cargo vans"),
        ("Car", "car", "Passenger vehicles"),
        ("SUV", "suv", "Sport utility vehicles"),
        ("Bus", "bus", "Passenger buses"),
        ("Trailer", "trailer", "Cargo trailers"),
        ("Heavy Equipment", "heavy_equipment", "Construction and industrial equipment"),
    ],
    "status": [
        ("Active", "active", "Vehicle is operational and in service"),
        ("Inactive", "inactive", "Vehicle is temporarily out of service"),
        ("Maintenance", "maintenance", "Vehicle is undergoing maintenance"),
        ("Out of Service", "out_of_service", "Vehicle is permanently out of service"),
    ],
    "ownership_type": [
        ("Owned", "owned", "Company-owned vehicle"),
        ("Leased", "leased", "Leased vehicle"),
        ("Rented", "rented", "Short-term rental"),
    ],
    "group": [
        ("Main Fleet", "main_fleet", "Primary vehicle fleet"),
        ("Local Delivery", "local_delivery", "Local delivery vehicles"),
        ("Long Haul", "long_haul", "Long-distance transportation fleet"),
        ("Special Operations", "special_ops", "Specialized vehicle fleet"),
        ("Training", "training", "Training vehicles"),
    ],
    "tag": [
        ("Long Haul", "long_haul", "Long-distance transportation"),
        ("Local Delivery", "local_delivery", "Local delivery routes"),
        ("Refrigerated", "refrigerated", "Temperature-controlled cargo"),
        ("Hazmat", "hazmat", "Hazardous materials transport"),
        ("Express", "express", "Priority/express delivery"),
        ("Heavy Load", "heavy_load", "Heavy cargo transport"),
        ("Special Equipment", "special_equipment", "Specialized equipment"),
        ("Training", "training", "Used for training purposes"),
        ("Backup", "backup", "Backup/reserve vehicle"),
        ("VIP", "vip", "VIP/executive transport"),
    ],
}


def vehicle_limit_for_tier(tier: Optional[str]) -> int:
    """Fixed tier lookup; unknown tiers get the test drive limit."""
    return TIER_VEHICLE_LIMITS.get(tier, DEFAULT_VEHICLE_LIMIT)


def default_setting_rows(company_id: UUID) -> List[dict]:
    now = _utc_now()
    rows = []
    for setting_type, entries in DEFAULT_COMPANY_SETTINGS.items():
        for sort_order, (name, value, description) in enumerate(entries, start=1):
            rows.append({
                "id": uuid4(),
                "company_id": company_id,
                "setting_type": setting_type,
                "name": name,
                "value": value,
                "description": description,
                "is_default": True,
                "sort_order": sort_order,
                "created_at": now,
            })
    return rows


async def seed_default_settings(session: AsyncSession, company_id: UUID) -> None:
    """Idempotent bulk insert of the default catalog."""
    stmt = (
        upsert_insert(session, CompanySetting)
        .values(default_setting_rows(company_id))
        .on_conflict_do_nothing(index_elements=["company_id", "setting_type", "value"])
    )
    await session.execute(stmt)


@registry.before(Company, INSERT, UPDATE)
async def derive_vehicle_quota(session: AsyncSession, old, new: Company) -> None:
    new.max_vehicles = vehicle_limit_for_tier(new.subscription_tier)


@registry.before(Company, UPDATE)
async def keep_company_owner(session: AsyncSession, old, new: Company) -> None:
    if old["owner_id"] != new.owner_id:
        raise ValidationError("Company ownership cannot be changed", context={"company_id": str(new.id)})


@registry.after(Company, INSERT)
async def seed_company_defaults(session: AsyncSession, old, new: Company) -> None:
    """Owner membership, default settings catalog and CREATE_COMPANY audit entry."""
    await insert(
        session,
        Membership(user_id=new.owner_id, company_id=new.id, role=MembershipRole.OWNER.value),
    )
    await seed_default_settings(session, new.id)
    await write_audit_entry(
        session,
        new.owner_id,
        "CREATE_COMPANY",
        {
            "company_id": str(new.id),
            "company_name": new.name,
            "subscription_tier": new.subscription_tier,
            "max_vehicles": new.max_vehicles,
        },
    )
    logger.info("Company %s created for owner %s", new.id, new.owner_id)


@registry.before(Vehicle, INSERT)
async def check_vehicle_capacity(session: AsyncSession, old, new: Vehicle) -> None:
    """A company holds at most max_vehicles vehicles."""
    company = (
        await session.execute(
            select(Company).where(Company.id == new.company_id).with_for_update()
        )
    ).scalar_one_or_none()
    if company is None:
        raise NotFound(f"Company {new.company_id} not found", context={"company_id": str(new.company_id)})

    count = await session.scalar(
        select(func.count(Vehicle.id)).where(Vehicle.company_id == new.company_id)
    )
    if count >= company.max_vehicles:
        raise ConflictError(
            f"Vehicle limit of {company.max_vehicles} reached for the {company.subscription_tier} plan",
            error_code="VEHICLE_LIMIT_REACHED",
            context={"company_id": str(company.id), "max_vehicles": company.max_vehicles},
        )
