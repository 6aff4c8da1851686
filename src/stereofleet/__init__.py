"""
stereofleet - persistent configuration for a small fleet of stereo cameras

Keeps device slots stable across restarts, merges newly detected serial
numbers, and persists per-device overrides only where they differ from the
fleet defaults.
"""

__version__ = "0.1.0"

from stereofleet.core import (
    ConfigError,
    DeviceRecord,
    FleetConfig,
    FleetConfigService,
    ReconcileResult,
    load_fleet_config,
    reconcile,
    save_fleet_config,
)

__all__ = [
    "ConfigError",
    "DeviceRecord",
    "FleetConfig",
    "FleetConfigService",
    "ReconcileResult",
    "load_fleet_config",
    "reconcile",
    "save_fleet_config",
]
