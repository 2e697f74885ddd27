"""
Audit logging models.

Both tables are append-only: rows are inserted and never updated or deleted.
user_id carries no foreign key; history outlives the user row.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fleetcore.models.base import Base, _utc_now


class AuditLog(Base):
    """
    User management audit trail.

    Actions: INSERT, UPDATE, DELETE (user row changes), CREATE_USER,
    AUTO_COMPANY_LINK, CREATE_COMPANY, MAKE_ADMIN, SETUP_ADMIN_PERMISSIONS.
    """

    __tablename__ = "user_audit_logs"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    performed_by: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action}, user_id={self.user_id})>"


class AdminAuditLog(Base):
    """Outcome of every admin bootstrap / provisioning attempt."""

    __tablename__ = "admin_audit_logs"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    user_id: Mapped[Optional[UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # CREATE_ADMIN, PROVISION_USER
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AdminAuditLog(id={self.id}, action={self.action}, success={self.success})>"
