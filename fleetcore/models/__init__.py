"""
Database models for the fleet maintenance core.

- Companies and their default taxonomy settings
- Identities and user profiles
- Memberships and role permissions (RBAC)
- Vehicles, equipment, technicians
- Work orders with part lines and labor entries
- Parts inventory
- Audit logs
"""

from fleetcore.models.base import Base
from fleetcore.models.company import Company, CompanySetting
from fleetcore.models.user import Identity, User
from fleetcore.models.membership import Membership, RolePermission
from fleetcore.models.asset import Equipment, Technician, Vehicle
from fleetcore.models.inventory import PartsInventory
from fleetcore.models.work_order import WorkOrder, WorkOrderLabor, WorkOrderPart
from fleetcore.models.audit import AdminAuditLog, AuditLog

__all__ = [
    "Base",
    "Company",
    "CompanySetting",
    "Identity",
    "User",
    "Membership",
    "RolePermission",
    "Vehicle",
    "Equipment",
    "Technician",
    "PartsInventory",
    "WorkOrder",
    "WorkOrderPart",
    "WorkOrderLabor",
    "AuditLog",
    "AdminAuditLog",
]
