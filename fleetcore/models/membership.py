"""
RBAC models.

Memberships (user standing within a company) and role permission grants.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from fleetcore.models.base import Base, _utc_now


class Membership(Base):
    """
    (user, company, role) association.

    Roles: owner, admin, member, user.
    """

    __tablename__ = "memberships"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Foreign keys
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    company_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role: Mapped[str] = mapped_column(String(20), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False
    )

    __table_args__ = (
        # One membership per user per company
        UniqueConstraint("user_id", "company_id", name="uq_membership_user_company"),
        # At most one admin per company; concurrent admin bootstraps collide here
        Index(
            "uq_membership_company_admin",
            "company_id",
            unique=True,
            postgresql_where=text("role = 'admin'"),
            sqlite_where=text("role = 'admin'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Membership(user_id={self.user_id}, company_id={self.company_id}, role={self.role})>"


class RolePermission(Base):
    """
    (company, role, resource, action) grant consumed by the permission evaluator.
    """

    __tablename__ = "role_permissions"

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
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)  # users, vehicles, work_orders, ...
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # view, create, edit, delete

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "role", "resource", "action", name="uq_role_permission"),
    )

    def __repr__(self) -> str:
        return f"<RolePermission({self.role}: {self.action} {self.resource}, company_id={self.company_id})>"
