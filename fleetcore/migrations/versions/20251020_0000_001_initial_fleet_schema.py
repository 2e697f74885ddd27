"""Initial fleet schema

Revision ID: 001
Revises:
Create Date: 2025-10-20 00:00:00.000000

Creates the initial PostgreSQL schema for the fleet maintenance core:
- Identities and user profiles
- Companies (tenants) and their settings catalog
- Memberships and role permission grants (RBAC)
- Vehicles, equipment and technicians
- Parts inventory
- Work orders with part lines and labor entries
- User and admin audit logs
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()))
    return columns


def upgrade() -> None:
    # Identities (authentication accounts)
    op.create_table(
        "identities",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False, server_default="email"),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("raw_metadata", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("provider", "email", name="uq_identity_provider_email"),
    )
    op.create_index("ix_identities_email", "identities", ["email"])

    # Users (company_id FK added once companies exists)
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("is_global_admin", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_company_id", "users", ["company_id"])

    # Companies
    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("subscription_tier", sa.String(50), nullable=False, server_default="test_drive"),
        sa.Column("max_vehicles", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
    )
    op.create_index("ix_companies_name", "companies", ["name"])
    op.create_index("ix_companies_contact_email", "companies", ["contact_email"])
    op.create_index("ix_companies_owner_id", "companies", ["owner_id"])
    op.create_foreign_key(
        "fk_users_company_id", "users", "companies", ["company_id"], ["id"], ondelete="SET NULL"
    )

    op.create_table(
        "company_settings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("setting_type", sa.String(50), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("value", sa.String(100), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("company_id", "setting_type", "value", name="uq_company_setting_value"),
    )
    op.create_index("ix_company_settings_company_id", "company_settings", ["company_id"])

    # RBAC
    op.create_table(
        "memberships",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "company_id", name="uq_membership_user_company"),
    )
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index("ix_memberships_company_id", "memberships", ["company_id"])
    op.create_index(
        "uq_membership_company_admin",
        "memberships",
        ["company_id"],
        unique=True,
        postgresql_where=sa.text("role = 'admin'"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("company_id", "role", "resource", "action", name="uq_role_permission"),
    )
    op.create_index("ix_role_permissions_company_id", "role_permissions", ["company_id"])

    # Assets
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("vin", sa.String(50), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_vehicles_company_id", "vehicles", ["company_id"])

    op.create_table(
        "equipment",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("serial_number", sa.String(100), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_equipment_company_id", "equipment", ["company_id"])

    op.create_table(
        "technicians",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_technicians_company_id", "technicians", ["company_id"])
    op.create_index("ix_technicians_user_id", "technicians", ["user_id"])

    # Inventory
    op.create_table(
        "parts_inventory",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("part_number", sa.String(100), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity_in_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reorder_point", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("manufacturer", sa.String(100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("company_id", "part_number", name="uq_parts_inventory_company_part_number"),
        sa.CheckConstraint("quantity_in_stock >= 0", name="ck_parts_inventory_stock_non_negative"),
    )
    op.create_index("ix_parts_inventory_company_id", "parts_inventory", ["company_id"])

    # Work orders
    op.create_table(
        "work_orders",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("company_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="repair"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("asset_type", sa.String(20), nullable=True),
        sa.Column("asset_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("vehicle_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("assigned_to", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("parts_cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("labor_cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Uuid(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["assigned_to"], ["technicians.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_work_orders_company_id", "work_orders", ["company_id"])
    op.create_index("ix_work_orders_status", "work_orders", ["status"])
    op.create_index("ix_work_orders_asset_id", "work_orders", ["asset_id"])
    op.create_index("ix_work_orders_vehicle_id", "work_orders", ["vehicle_id"])

    op.create_table(
        "work_order_parts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("work_order_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("part_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["part_id"], ["parts_inventory.id"]),
        sa.CheckConstraint("quantity > 0", name="ck_work_order_part_quantity_positive"),
    )
    op.create_index("ix_work_order_parts_work_order_id", "work_order_parts", ["work_order_id"])
    op.create_index("ix_work_order_parts_part_id", "work_order_parts", ["part_id"])

    op.create_table(
        "work_order_labor",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("work_order_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("technician_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_overtime", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("total_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["technician_id"], ["technicians.id"]),
    )
    op.create_index("ix_work_order_labor_work_order_id", "work_order_labor", ["work_order_id"])
    op.create_index("ix_work_order_labor_technician_id", "work_order_labor", ["technician_id"])

    # Audit (append-only, no FK to users)
    op.create_table(
        "user_audit_logs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("performed_by", sa.Uuid(as_uuid=True), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_user_audit_logs_user_id", "user_audit_logs", ["user_id"])
    op.create_index("ix_user_audit_logs_action", "user_audit_logs", ["action"])
    op.create_index("ix_user_audit_logs_created_at", "user_audit_logs", ["created_at"])

    op.create_table(
        "admin_audit_logs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_admin_audit_logs_user_id", "admin_audit_logs", ["user_id"])
    op.create_index("ix_admin_audit_logs_created_at", "admin_audit_logs", ["created_at"])


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign keys)
    op.drop_table("admin_audit_logs")
    op.drop_table("user_audit_logs")
    op.drop_table("work_order_labor")
    op.drop_table("work_order_parts")
    op.drop_table("work_orders")
    op.drop_table("parts_inventory")
    op.drop_table("technicians")
    op.drop_table("equipment")
    op.drop_table("vehicles")
    op.drop_table("role_permissions")
    op.drop_table("memberships")
    op.drop_table("company_settings")
    op.drop_constraint("fk_users_company_id", "users", type_="foreignkey")
    op.drop_table("companies")
    op.drop_table("users")
    op.drop_table("identities")
