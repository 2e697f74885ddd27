"""
Parts inventory model.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fleetcore.models.base import Base, _utc_now


class PartsInventory(Base):
    """
    Stocked part. quantity_in_stock never goes negative; work order part
    lines adjust it through the inventory hook only.
    """

    __tablename__ = "parts_inventory"

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

    part_number: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity_in_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("company_id", "part_number", name="uq_parts_inventory_company_part_number"),
        CheckConstraint("quantity_in_stock >= 0", name="ck_parts_inventory_stock_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PartsInventory(part_number={self.part_number}, stock={self.quantity_in_stock})>"

    @property
    def needs_reorder(self) -> bool:
        return self.quantity_in_stock <= self.reorder_point
