"""
Fleet maintenance core.

Backend core of the fleet maintenance service:
- Role-based permission evaluation per company
- Invariant hooks run inside every mutation (cost rollups, inventory,
  asset-field sync, subscription quotas)
- Audit logging
- Identity provisioning and admin bootstrap
"""

__version__ = "1.0.0"

from fleetcore.config import FleetConfig

__all__ = ["FleetConfig"]
