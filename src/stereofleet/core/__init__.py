"""
Fleet configuration core: codec, typed model, default inheritance,
reconciliation of detected serials, and persistence.
"""

from .codec import ConfigError, ConfigParseError, KeyMap, parse_text, read_key_map
from .defaults import apply_defaults, control_equal, nearly_equal, params_equal
from .model import (
    ControlSettings,
    DeviceRecord,
    FleetConfig,
    MountGeometry,
    ProcessingParams,
    canonical_orientation,
    default_orientation,
    make_auto_name,
)
from .reconciler import ReconcileResult, fit_to_fleet_size, reconcile
from .service import FleetConfigService
from .store import config_from_key_map, load_fleet_config, render_fleet_config, save_fleet_config

__all__ = [
    "ConfigError",
    "ConfigParseError",
    "ControlSettings",
    "DeviceRecord",
    "FleetConfig",
    "FleetConfigService",
    "KeyMap",
    "MountGeometry",
    "ProcessingParams",
    "ReconcileResult",
    "apply_defaults",
    "canonical_orientation",
    "config_from_key_map",
    "control_equal",
    "default_orientation",
    "fit_to_fleet_size",
    "load_fleet_config",
    "make_auto_name",
    "nearly_equal",
    "params_equal",
    "parse_text",
    "read_key_map",
    "reconcile",
    "render_fleet_config",
    "save_fleet_config",
]
