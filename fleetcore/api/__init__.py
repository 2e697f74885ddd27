"""
Fleet API routes.

Provides REST API endpoints for:
- Authentication (register with provisioning, login, token refresh)
- Companies, assets, technicians, parts and members
- Work orders with part lines and labor
- User profiles
- Audit logs
- Admin bootstrap
"""

from fleetcore.api.admin import router as admin_router
from fleetcore.api.audit import router as audit_router
from fleetcore.api.auth import router as auth_router
from fleetcore.api.companies import router as companies_router
from fleetcore.api.users import router as users_router
from fleetcore.api.work_orders import router as work_orders_router

__all__ = [
    "auth_router",
    "companies_router",
    "work_orders_router",
    "users_router",
    "audit_router",
    "admin_router",
]
