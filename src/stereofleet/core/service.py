"""
Serialized facade over the Load -> Reconcile -> Save cycle.

Reconciliation is a read-modify-write over the whole device list, so every
mutating call goes through one lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .codec import COMMENT_MARKERS, ConfigError
from .model import DeviceRecord, FleetConfig, canonical_orientation, default_orientation
from .reconciler import ReconcileResult, reconcile
from .store import load_fleet_config, save_fleet_config

logger = logging.getLogger(__name__)


class FleetConfigService:
    """Owns the fleet configuration and the file it is persisted to."""

    def __init__(self, config_path: str | Path, *, config: FleetConfig | None = None) -> None:
        self._path = Path(config_path)
        self._config = config or FleetConfig()
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def snapshot(self) -> FleetConfig:
        """Deep copy of the current configuration."""
        with self._lock:
            return self._config.model_copy(deep=True)

    def load_or_create(self) -> bool:
        """
        Load the configuration file, or persist fresh defaults when it is missing.

        Returns True when an existing file was loaded.
        """

        with self._lock:
            config, ok = load_fleet_config(self._path)
            self._config = config
            if not ok:
                logger.info("Creating default fleet config at %s", self._path)
                self._save_locked()
            return ok

    def reconcile(self, detected_serials: Iterable[str], *, save: bool = True) -> ReconcileResult:
        """Merge detected serials and persist the result when it changed."""

        with self._lock:
            result = reconcile(self._config, list(detected_serials))
            self._config = result.config
            if result.changed:
                logger.info("Fleet config changed after detection")
                if save:
                    self._save_locked()
            return result

    def update_device(self, slot: int, **changes: Any) -> DeviceRecord:
        """
        Apply operator edits to one slot.

        ``changes`` uses :class:`DeviceRecord` field names. Nested records may be
        given as models (replacing the record) or dicts (merged into it). Serials
        and names may not contain ``;`` or ``#``, which the file format treats as
        the start of a comment.
        """

        with self._lock:
            if not 0 <= slot < len(self._config.devices):
                raise IndexError(f"No device slot {slot} (fleet has {len(self._config.devices)})")
            current = self._config.devices[slot]
            data = current.model_dump()
            for key, value in changes.items():
                if key not in DeviceRecord.model_fields:
                    raise KeyError(f"Unknown device field '{key}'")
                if hasattr(value, "model_dump"):
                    data[key] = value.model_dump()
                elif isinstance(value, dict) and isinstance(data[key], dict):
                    data[key] = {**data[key], **value}
                else:
                    data[key] = value
            try:
                updated = DeviceRecord.model_validate(data)
            except ValidationError as exc:
                raise ConfigError(f"Invalid changes for slot {slot}") from exc
            for field in ("serial", "name"):
                text = getattr(updated, field)
                if any(marker in text for marker in COMMENT_MARKERS):
                    raise ConfigError(f"Device {field} {text!r} contains a comment marker")
            updated.orientation = canonical_orientation(updated.orientation) or default_orientation(
                slot
            )
            serial = updated.serial
            if serial and any(
                other.serial == serial
                for index, other in enumerate(self._config.devices)
                if index != slot
            ):
                raise ConfigError(f"Serial {serial} is already assigned to another slot")
            self._config.devices[slot] = updated
            return updated.model_copy(deep=True)

    def save(self) -> bool:
        with self._lock:
            return self._save_locked()

    def _save_locked(self) -> bool:
        return save_fleet_config(self._path, self._config)


__all__ = ["FleetConfigService"]
