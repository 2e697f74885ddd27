"""
FastAPI dependencies for authentication.
"""

from fleetcore.middleware.auth import get_actor, get_current_identity

__all__ = ["get_actor", "get_current_identity"]
