"""
Hand-off from the fleet configuration to the capture pipeline.

Each enabled slot becomes a :class:`CaptureTarget` describing which device to
open, the settings to apply, and where its artifacts go::

    <output_dir>/<prefix><serial>_<orientation>/PNG
    <output_dir>/<prefix><serial>_<orientation>/PGM
    <output_dir>/<prefix><serial>_<orientation>/PLY
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .core.model import (
    ControlSettings,
    DeviceRecord,
    FleetConfig,
    MountGeometry,
    ProcessingParams,
    canonical_orientation,
    default_orientation,
    make_auto_name,
    sanitize_tag,
)

logger = logging.getLogger(__name__)

FALLBACK_TAG = "BBB"


class ArtifactDirs(BaseModel):
    """Per-device artifact folders."""

    model_config = ConfigDict(frozen=True)

    root: Path
    png: Path
    pgm: Path
    ply: Path

    def ensure(self) -> None:
        self.png.mkdir(parents=True, exist_ok=True)
        self.pgm.mkdir(parents=True, exist_ok=True)
        self.ply.mkdir(parents=True, exist_ok=True)


class CaptureTarget(BaseModel):
    """Everything the capture pipeline needs to drive one device."""

    model_config = ConfigDict(frozen=True)

    slot: int
    serial: str = Field(default="", description="Empty when the slot is unassigned.")
    name: str
    orientation: str
    mount: MountGeometry
    params: ProcessingParams
    control: ControlSettings
    artifact_prefix: str
    dirs: ArtifactDirs

    @property
    def assigned(self) -> bool:
        return bool(self.serial)


def resolve_output_dir(config: FleetConfig, base_dir: str | Path) -> Path:
    """Output root, with an empty or ``.`` setting meaning ``base_dir``."""
    output = (config.output_dir or "").strip()
    if not output or output == ".":
        return Path(base_dir)
    return Path(output)


def artifact_prefix(config: FleetConfig, record: DeviceRecord, slot: int) -> str:
    if record.assigned:
        base_name = f"{config.name_prefix}{record.serial}"
    elif record.name:
        base_name = record.name
    else:
        base_name = make_auto_name(config.name_prefix, "", slot)
    orientation = canonical_orientation(record.orientation) or default_orientation(slot)
    return sanitize_tag(f"{base_name}_{orientation}", FALLBACK_TAG)


def artifact_dirs(
    config: FleetConfig, record: DeviceRecord, slot: int, *, output_dir: str | Path
) -> ArtifactDirs:
    root = Path(output_dir) / artifact_prefix(config, record, slot)
    return ArtifactDirs(
        root=root,
        png=root / config.png_dir,
        pgm=root / config.pgm_dir,
        ply=root / config.ply_dir,
    )


def ensure_artifact_directories(config: FleetConfig, *, output_dir: str | Path) -> list[Path]:
    """Create the artifact folders of every slot; returns the per-device roots."""

    roots: list[Path] = []
    for slot, record in enumerate(config.devices):
        dirs = artifact_dirs(config, record, slot, output_dir=output_dir)
        dirs.ensure()
        roots.append(dirs.root)
    return roots


def capture_targets(config: FleetConfig, *, output_dir: str | Path) -> list[CaptureTarget]:
    """
    Describe the enabled slots for the capture pipeline.

    A serial that already appeared in an earlier enabled slot is skipped so a
    device is never opened twice. Unassigned slots are kept and reported as such.
    """

    targets: list[CaptureTarget] = []
    used: set[str] = set()
    for slot, record in enumerate(config.devices[: config.max_fleet_size]):
        if not record.enabled:
            continue
        if record.assigned and record.serial in used:
            logger.warning(
                "Duplicate serial %s in slot %d (%s); skipping", record.serial, slot, record.name
            )
            continue
        if record.assigned:
            used.add(record.serial)
        name = record.name
        if not name and config.auto_name_from_serial:
            name = config.auto_name(record.serial, slot)
        targets.append(
            CaptureTarget(
                slot=slot,
                serial=record.serial,
                name=name,
                orientation=canonical_orientation(record.orientation) or default_orientation(slot),
                mount=record.mount.model_copy(),
                params=record.params.model_copy(),
                control=record.control.model_copy(),
                artifact_prefix=artifact_prefix(config, record, slot),
                dirs=artifact_dirs(config, record, slot, output_dir=output_dir),
            )
        )
    return targets


__all__ = [
    "ArtifactDirs",
    "CaptureTarget",
    "artifact_dirs",
    "artifact_prefix",
    "capture_targets",
    "ensure_artifact_directories",
    "resolve_output_dir",
]
