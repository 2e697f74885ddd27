"""
Fixed value catalogs shared by models, hooks and the permission evaluator.
"""

from enum import Enum


class Resource(str, Enum):
    USERS = "users"
    VEHICLES = "vehicles"
    EQUIPMENT = "equipment"
    MAINTENANCE = "maintenance"
    WORK_ORDERS = "work_orders"
    PARTS_INVENTORY = "parts_inventory"
    REPORTS = "reports"
    SETTINGS = "settings"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class MembershipRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    USER = "user"


class SubscriptionTier(str, Enum):
    TEST_DRIVE = "test_drive"
    STARTER = "starter"
    STANDARD = "standard"
    PROFESSIONAL = "professional"


class AssetType(str, Enum):
    VEHICLE = "vehicle"
    EQUIPMENT = "equipment"


class WorkOrderType(str, Enum):
    REPAIR = "repair"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"
    OTHER = "other"


class WorkOrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class WorkOrderPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TechnicianStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


def values(enum_cls) -> tuple:
    return tuple(member.value for member in enum_cls)
