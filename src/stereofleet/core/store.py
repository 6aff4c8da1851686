"""
Load and save the fleet configuration file.

Layout of the persisted file::

    [General]            global settings
    [Defaults]           default mount geometry
    [Defaults.Params]    default processing parameters
    [Defaults.Control]   default exposure/gain
    [Device.N]           identity and mount of slot N (always written)
    [Device.N.Params]    only when slot N differs from the defaults
    [Device.N.Control]   only when slot N differs from the defaults

Files written by older releases used ``[Camera.N]`` sections; those are read
when no ``[Device.N]`` section exists for the slot.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .codec import IniWriter, KeyMap, read_key_map
from .defaults import (
    apply_defaults,
    apply_overrides,
    has_control_override,
    has_params_override,
)
from .model import (
    ControlSettings,
    DeviceRecord,
    FleetConfig,
    MountGeometry,
    ProcessingParams,
    canonical_orientation,
    clamp_fleet_size,
    default_orientation,
)
from .reconciler import fit_to_fleet_size

logger = logging.getLogger(__name__)

GENERAL_SECTION = "General"
DEFAULTS_SECTION = "Defaults"
DEVICE_SECTION = "Device"
LEGACY_DEVICE_SECTION = "Camera"

ORIENTATION_KEYS = ("orientation", "orient", "side")
MARKER_KEYS = ("serial", "name", "enabled", *ORIENTATION_KEYS)
_UNSIGNED_FIELDS = frozenset({"capture_timeout_ms"})


def _general(keys: KeyMap) -> FleetConfig:
    config = apply_overrides(
        FleetConfig(), keys, GENERAL_SECTION.lower(), unsigned=_UNSIGNED_FIELDS
    )
    # model_copy skips validators, so the clamp is repeated here.
    config.max_fleet_size = clamp_fleet_size(config.max_fleet_size)
    config.default_mount = apply_overrides(MountGeometry(), keys, "defaults")
    config.default_params = apply_overrides(ProcessingParams(), keys, "defaults.params")
    config.default_control = apply_overrides(ControlSettings(), keys, "defaults.control")
    return config


def _device_base(keys: KeyMap, slot: int) -> tuple[str, bool]:
    """Section prefix for ``slot`` and whether it holds any identity keys."""
    for section in (DEVICE_SECTION, LEGACY_DEVICE_SECTION):
        base = f"{section}.{slot}".lower()
        if any(keys.has(f"{base}.{marker}") for marker in MARKER_KEYS):
            return base, True
    return f"{DEVICE_SECTION}.{slot}".lower(), False


def _load_device(keys: KeyMap, config: FleetConfig, slot: int) -> DeviceRecord:
    base, configured = _device_base(keys, slot)
    record = apply_defaults(config, DeviceRecord(orientation=default_orientation(slot)))

    if configured:
        record.enabled = keys.get_bool(f"{base}.enabled", record.enabled)
        record.serial = keys.get_str(f"{base}.serial")
        record.name = keys.get_str(f"{base}.name")
        for key in ORIENTATION_KEYS:
            if keys.has(f"{base}.{key}"):
                record.orientation = keys.get_str(f"{base}.{key}")
                break
        record.orientation = canonical_orientation(record.orientation)
        record.mount = apply_overrides(record.mount, keys, base)
        record.params = apply_overrides(record.params, keys, f"{base}.params")
        record.control = apply_overrides(record.control, keys, f"{base}.control")
    else:
        record.enabled = True

    if not record.orientation:
        record.orientation = default_orientation(slot)
    if not record.name:
        record.name = config.auto_name(record.serial, slot)
    return record


def config_from_key_map(keys: KeyMap) -> FleetConfig:
    """
    Build a typed :class:`FleetConfig` from a parsed key map.

    Absent keys fall back to model defaults. Raises ``ConfigParseError`` when a
    numeric field holds non-numeric text.
    """

    config = _general(keys)
    config.devices = [_load_device(keys, config, slot) for slot in range(config.max_fleet_size)]
    return config


def load_fleet_config(path: str | Path) -> tuple[FleetConfig, bool]:
    """
    Load the configuration at ``path``.

    Returns ``(config, True)`` on success. When the file cannot be read the
    result is ``(defaults, False)``, with every slot up to ``maxFleetSize``
    already filled in. Numeric parse errors propagate.
    """

    try:
        keys = read_key_map(path)
    except OSError as exc:
        logger.warning("Unable to read fleet config %s: %s", path, exc)
        return config_from_key_map(KeyMap()), False
    config = config_from_key_map(keys)
    logger.info(
        "Loaded fleet config from %s (%d slots, %d assigned)",
        path,
        len(config.devices),
        len(config.serials()),
    )
    return config, True


def _device_items(config: FleetConfig, record: DeviceRecord, slot: int) -> list[tuple[str, object]]:
    orientation = canonical_orientation(record.orientation or default_orientation(slot))
    name = record.name
    if not name and config.auto_name_from_serial:
        name = config.auto_name(record.serial, slot)
    return [
        ("enabled", record.enabled),
        ("serial", record.serial),
        ("name", name),
        ("orientation", orientation),
        *record.mount.persisted_items(),
    ]


def render_fleet_config(config: FleetConfig) -> str:
    """Serialize ``config``, padding or truncating the device list on a copy first."""

    config = config.model_copy(deep=True)
    config.max_fleet_size = clamp_fleet_size(config.max_fleet_size)
    fit_to_fleet_size(config)

    writer = IniWriter()
    writer.section(GENERAL_SECTION, config.persisted_items())
    writer.section(DEFAULTS_SECTION, config.default_mount.persisted_items())
    writer.section(f"{DEFAULTS_SECTION}.Params", config.default_params.persisted_items())
    writer.section(f"{DEFAULTS_SECTION}.Control", config.default_control.persisted_items())

    for slot, record in enumerate(config.devices):
        base = f"{DEVICE_SECTION}.{slot}"
        writer.section(base, _device_items(config, record, slot))
        if has_params_override(config, record):
            writer.section(f"{base}.Params", record.params.persisted_items())
        if has_control_override(config, record):
            writer.section(f"{base}.Control", record.control.persisted_items())
    return writer.render()


def save_fleet_config(path: str | Path, config: FleetConfig) -> bool:
    """Write ``config`` to ``path``; returns False when the file cannot be written."""

    target = Path(path)
    text = render_fleet_config(config)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        logger.error("Unable to write fleet config %s: %s", target, exc)
        return False
    logger.info("Saved fleet config to %s", target)
    return True


__all__ = [
    "MARKER_KEYS",
    "config_from_key_map",
    "load_fleet_config",
    "render_fleet_config",
    "save_fleet_config",
]
