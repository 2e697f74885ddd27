"""
Identity and User models.

An Identity is the authentication account; the User is the profile row
created for it by the provisioning linker (same id).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fleetcore.models.base import Base, _utc_now


class Identity(Base):
    """
    Authentication account (email + credentials + signup metadata).

    The same email may exist once per provider (password, SSO).
    """

    __tablename__ = "identities"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(50), default="email", nullable=False)  # email, saml, oauth
    hashed_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    raw_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)  # first_name, last_name, ...

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("provider", "email", name="uq_identity_provider_email"),
    )

    def __repr__(self) -> str:
        return f"<Identity(id={self.id}, email={self.email})>"


class User(Base):
    """
    User profile.

    is_global_admin may only be changed by the platform-admin actor; the
    user hooks enforce it.
    """

    __tablename__ = "users"

    # Primary key (shared with Identity)
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)  # user, member, admin, system
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    # Nullable: users without a matching company stay unattached
    company_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("companies.id", ondelete="SET NULL", use_alter=True, name="fk_users_company_id"),
        nullable=True,
        index=True
    )

    is_global_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, company_id={self.company_id})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
