"""
Company model.

Each company is a tenant of the fleet maintenance service.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fleetcore.models.base import Base, _utc_now


class Company(Base):
    """
    Company (tenant) model.

    max_vehicles is derived from subscription_tier by the quota hook and
    is never taken from caller input.
    """

    __tablename__ = "companies"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Company details
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Subscription/billing
    subscription_tier: Mapped[str] = mapped_column(String(50), default="test_drive", nullable=False)
    max_vehicles: Mapped[int] = mapped_column(Integer, default=3, nullable=False)  # derived

    # Owner (creator) of the company
    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name}, tier={self.subscription_tier})>"


class CompanySetting(Base):
    """
    Per-company taxonomy row (vehicle types, statuses, ownership types,
    groups, tags). Seeded from a fixed catalog when a company is created.
    """

    __tablename__ = "company_settings"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )
    company_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    setting_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_default: Mapped[bool] = mapped_column(default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "setting_type", "value", name="uq_company_setting_value"),
    )

    def __repr__(self) -> str:
        return f"<CompanySetting({self.setting_type}={self.value}, company_id={self.company_id})>"
