"""
Merge freshly detected serial numbers into the stored fleet configuration.

Existing slot assignments are never moved: detected serials first fill
empty slots in ascending order, then extend the fleet up to its cap. Any
duplicate serial already present in the configuration is cleared from the
later slot so the earliest assignment wins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .defaults import new_device
from .model import (
    FleetConfig,
    canonical_orientation,
    clamp_fleet_size,
    default_orientation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Updated configuration plus whether anything differs from the input."""

    config: FleetConfig
    changed: bool


def unique_serials(serials: Iterable[str]) -> list[str]:
    """Drop empty entries and later duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for serial in serials:
        if serial and serial not in seen:
            seen[serial] = None
    return list(seen)


def fit_to_fleet_size(config: FleetConfig) -> bool:
    """
    Pad or truncate ``config.devices`` in place to exactly ``max_fleet_size``.

    Padding records are fully defaulted, unassigned and named after their
    slot. Returns True when the device list was modified.
    """

    changed = False
    while len(config.devices) < config.max_fleet_size:
        slot = len(config.devices)
        config.devices.append(new_device(config, slot))
        changed = True
    if len(config.devices) > config.max_fleet_size:
        del config.devices[config.max_fleet_size :]
        changed = True
    return changed


def _clear_duplicate_serials(config: FleetConfig) -> bool:
    changed = False
    devices = config.devices
    for i, first in enumerate(devices):
        if not first.serial:
            continue
        for j in range(i + 1, len(devices)):
            later = devices[j]
            if later.serial and later.serial == first.serial:
                logger.warning(
                    "Serial %s is assigned to slots %d and %d; clearing slot %d",
                    first.serial,
                    i,
                    j,
                    j,
                )
                later.serial = ""
                later.name = config.auto_name("", j)
                if not later.orientation:
                    later.orientation = default_orientation(j)
                later.enabled = True
                changed = True
    return changed


def _fill_empty_slot(config: FleetConfig, serial: str) -> bool:
    limit = min(len(config.devices), config.max_fleet_size)
    for slot in range(limit):
        device = config.devices[slot]
        if device.serial:
            continue
        device.serial = serial
        device.orientation = canonical_orientation(device.orientation or default_orientation(slot))
        if config.auto_name_from_serial:
            device.name = config.auto_name(serial, slot)
        logger.info("Assigned detected serial %s to empty slot %d", serial, slot)
        return True
    return False


def reconcile(config: FleetConfig, detected_serials: Iterable[str]) -> ReconcileResult:
    """
    Merge ``detected_serials`` into a copy of ``config``.

    The input is left untouched. When automatic adding is disabled the input is
    returned as-is with ``changed=False``.
    """

    if not config.auto_add_detected:
        return ReconcileResult(config=config, changed=False)

    updated = config.model_copy(deep=True)
    updated.max_fleet_size = clamp_fleet_size(updated.max_fleet_size)

    changed = _clear_duplicate_serials(updated)

    for serial in unique_serials(detected_serials):
        # Slots past the cap are about to be truncated and do not count as placed.
        placed = {d.serial for d in updated.devices[: updated.max_fleet_size] if d.serial}
        if serial in placed:
            continue
        if _fill_empty_slot(updated, serial):
            changed = True
            continue
        if len(updated.devices) >= updated.max_fleet_size:
            logger.info(
                "Fleet is full (%d slots); ignoring detected serial %s",
                updated.max_fleet_size,
                serial,
            )
            continue
        slot = len(updated.devices)
        name = updated.auto_name(serial if updated.auto_name_from_serial else "", slot)
        updated.devices.append(new_device(updated, slot, serial, name=name))
        logger.info("Added detected serial %s as new slot %d", serial, slot)
        changed = True

    if fit_to_fleet_size(updated):
        changed = True

    return ReconcileResult(config=updated, changed=changed)


__all__ = ["ReconcileResult", "fit_to_fleet_size", "reconcile", "unique_serials"]
