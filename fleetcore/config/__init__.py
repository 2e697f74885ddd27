"""Configuration for the fleet maintenance core."""

from fleetcore.config.settings import FleetConfig, get_settings

__all__ = ["FleetConfig", "get_settings"]
