"""
Fleet-wide default inheritance and the equality checks used for diff-based saves.

Defaults are always passed in explicitly (the owning :class:`FleetConfig`);
nothing here reads or mutates shared state.
"""

from __future__ import annotations

from typing import TypeVar

from .codec import KeyMap
from .model import (
    ControlSettings,
    DeviceRecord,
    FleetConfig,
    ProcessingParams,
    _Record,
    default_orientation,
)

RELATIVE_EPSILON = 1e-6
CONTROL_EPSILON = 1e-6

RecordT = TypeVar("RecordT", bound=_Record)


def nearly_equal(a: float, b: float, eps: float = RELATIVE_EPSILON) -> bool:
    """Relative comparison scaled by the larger magnitude (never below 1)."""
    scale = max(1.0, abs(a), abs(b))
    return abs(a - b) <= eps * scale


def params_equal(a: ProcessingParams, b: ProcessingParams) -> bool:
    for name, _key, annotation in ProcessingParams.persisted_fields():
        left = getattr(a, name)
        right = getattr(b, name)
        if annotation is float:
            if not nearly_equal(left, right):
                return False
        elif left != right:
            return False
    return True


def control_equal(a: ControlSettings, b: ControlSettings) -> bool:
    # Absolute tolerance, unlike params_equal; changing it would change which
    # override sections get written.
    return (
        abs(a.exposure_us - b.exposure_us) <= CONTROL_EPSILON
        and abs(a.gain_db - b.gain_db) <= CONTROL_EPSILON
    )


def has_params_override(fleet: FleetConfig, record: DeviceRecord) -> bool:
    return not params_equal(record.params, fleet.default_params)


def has_control_override(fleet: FleetConfig, record: DeviceRecord) -> bool:
    return not control_equal(record.control, fleet.default_control)


def apply_defaults(fleet: FleetConfig, record: DeviceRecord) -> DeviceRecord:
    """Return ``record`` with mount, params and control copied from the fleet defaults."""
    return record.model_copy(
        update={
            "mount": fleet.default_mount.model_copy(),
            "params": fleet.default_params.model_copy(),
            "control": fleet.default_control.model_copy(),
        }
    )


def new_device(fleet: FleetConfig, slot: int, serial: str = "", *, name: str = "") -> DeviceRecord:
    """Fully defaulted record for ``slot``; the orientation comes from the slot index."""
    record = DeviceRecord(
        enabled=True,
        serial=serial,
        orientation=default_orientation(slot),
        name=name or fleet.auto_name(serial, slot),
    )
    return apply_defaults(fleet, record)


def _convert(keys: KeyMap, key: str, annotation: object, unsigned: bool) -> object:
    if annotation is bool:
        return keys.get_bool(key)
    if annotation is int:
        return keys.get_uint64(key) if unsigned else keys.get_int(key)
    if annotation is float:
        return keys.get_float(key)
    return keys.get_str(key)


def read_overrides(
    keys: KeyMap,
    prefix: str,
    record_type: type[RecordT],
    *,
    unsigned: frozenset[str] = frozenset(),
) -> dict[str, object]:
    """
    Collect typed values stored under ``prefix`` for ``record_type`` fields.

    Only keys that are present are returned, so the result can be layered onto
    an already-defaulted record field by field. Legacy keys are consulted when
    the current key is missing.
    """

    updates: dict[str, object] = {}
    for name, key, annotation in record_type.persisted_fields():
        candidates = (key, *record_type.LEGACY_KEYS.get(name, ()))
        for candidate in candidates:
            full_key = f"{prefix}.{candidate}" if prefix else candidate
            if keys.has(full_key):
                updates[name] = _convert(keys, full_key, annotation, name in unsigned)
                break
    return updates


def apply_overrides(
    base: RecordT,
    keys: KeyMap,
    prefix: str,
    *,
    unsigned: frozenset[str] = frozenset(),
) -> RecordT:
    """Layer stored values under ``prefix`` onto ``base``; stored values win per field."""
    updates = read_overrides(keys, prefix, type(base), unsigned=unsigned)
    if not updates:
        return base.model_copy()
    return base.model_copy(update=updates)


__all__ = [
    "CONTROL_EPSILON",
    "RELATIVE_EPSILON",
    "apply_defaults",
    "apply_overrides",
    "control_equal",
    "has_control_override",
    "has_params_override",
    "nearly_equal",
    "new_device",
    "params_equal",
    "read_overrides",
]
