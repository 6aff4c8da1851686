"""
Typed records for the persisted fleet configuration.

Every field carries the key it is persisted under as its pydantic alias, and
the declared field order is the order in which the codec writes it.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_FLEET_SIZE = 1
MAX_FLEET_SIZE = 3

ORIENT_LEFT = "left"
ORIENT_RIGHT = "right"
ORIENT_TOP = "top"

_ORIENTATION_SYNONYMS: dict[str, str] = {
    "left": ORIENT_LEFT,
    "l": ORIENT_LEFT,
    "izq": ORIENT_LEFT,
    "izquierda": ORIENT_LEFT,
    "right": ORIENT_RIGHT,
    "r": ORIENT_RIGHT,
    "der": ORIENT_RIGHT,
    "derecha": ORIENT_RIGHT,
    "top": ORIENT_TOP,
    "overhead": ORIENT_TOP,
    "cen": ORIENT_TOP,
    "cenital": ORIENT_TOP,
}

_UNSAFE_TAG_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_tag(value: str, fallback: str = "") -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with an underscore."""
    cleaned = _UNSAFE_TAG_CHARS.sub("_", value)
    return cleaned or fallback


def default_orientation(slot: int) -> str:
    if slot == 0:
        return ORIENT_LEFT
    if slot == 1:
        return ORIENT_RIGHT
    return ORIENT_TOP


def canonical_orientation(value: str) -> str:
    """
    Normalise an orientation token.

    Known synonyms map to ``left``/``right``/``top``; any other non-empty value
    is lower-cased and made filesystem safe. Empty input stays empty so the
    caller can fall back to the slot default.
    """

    token = (value or "").strip().lower()
    if not token:
        return ""
    return _ORIENTATION_SYNONYMS.get(token) or sanitize_tag(token)


def clamp_fleet_size(value: int) -> int:
    return max(MIN_FLEET_SIZE, min(MAX_FLEET_SIZE, int(value)))


def make_auto_name(prefix: str, serial: str, slot: int) -> str:
    """Display name derived from the serial, or from the 1-based slot number."""
    if serial:
        return f"{prefix}{serial}"
    return f"{prefix}UNASSIGNED{slot + 1}"


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Extra keys accepted on load for older files, by field name.
    LEGACY_KEYS: ClassVar[dict[str, tuple[str, ...]]] = {}

    @classmethod
    def persisted_fields(cls) -> list[tuple[str, str, Any]]:
        """``(field_name, persisted_key, annotation)`` in declaration order."""
        return [
            (name, info.alias or name, info.annotation)
            for name, info in cls.model_fields.items()
            if info.annotation in (bool, int, float, str)
        ]

    def persisted_items(self) -> list[tuple[str, object]]:
        return [(key, getattr(self, name)) for name, key, _ in self.persisted_fields()]


class MountGeometry(_Record):
    """Where a device sits relative to the ground and the reference arc."""

    LEGACY_KEYS: ClassVar[dict[str, tuple[str, ...]]] = {
        "height_m": ("alturaCamaraM",),
        "arc_offset_m": ("distHorizArc0M",),
    }

    height_m: float = Field(default=1.5, alias="heightM")
    arc_offset_m: float = Field(default=0.0, alias="arcOffsetM")
    pitch_deg: float = Field(default=0.0, alias="pitchDeg")


class ProcessingParams(_Record):
    """Point-cloud processing knobs consumed by the capture pipeline."""

    LEGACY_KEYS: ClassVar[dict[str, tuple[str, ...]]] = {
        "object_face_percentile": ("bultoFacePercentile",),
    }

    min_range_m: float = Field(default=1.0, alias="minRangeM")
    max_range_m: float = Field(default=6.0, alias="maxRangeM")

    roi_min_x_pct: int = Field(default=35, alias="roiMinXPct")
    roi_max_x_pct: int = Field(default=65, alias="roiMaxXPct")
    roi_min_y_pct: int = Field(default=35, alias="roiMinYPct")
    roi_max_y_pct: int = Field(default=65, alias="roiMaxYPct")

    decimation_factor: int = Field(default=2, alias="decimationFactor")

    apply_speckle_filter: bool = Field(default=False, alias="applySpeckleFilter")
    max_speckle_size: int = Field(default=200, alias="maxSpeckleSize")
    speckle_threshold: int = Field(default=4, alias="speckleThreshold")

    apply_median_3x3: bool = Field(default=False, alias="applyMedian3x3")

    voxel_leaf_m: float = Field(default=0.01, alias="voxelLeafM")

    outlier_radius_m: float = Field(default=0.05, alias="outlierRadiusM")
    outlier_min_neighbors: int = Field(default=8, alias="outlierMinNeighbors")

    keep_largest_cluster: bool = Field(default=True, alias="keepLargestCluster")

    enable_ground_plane_filter: bool = Field(default=True, alias="enableGroundPlaneFilter")
    ground_band_pct: float = Field(default=20.0, alias="groundBandPct")
    ground_ransac_thr_m: float = Field(default=0.02, alias="groundRansacThrM")
    ground_ransac_iters: int = Field(default=200, alias="groundRansacIters")
    ground_cut_margin_m: float = Field(default=0.02, alias="groundCutMarginM")

    enable_front_depth_clamp: bool = Field(default=True, alias="enableFrontDepthClamp")
    front_face_percentile: float = Field(default=5.0, alias="frontFacePercentile")
    front_depth_band_m: float = Field(default=0.15, alias="frontDepthBandM")

    face_slab_m: float = Field(default=0.05, alias="faceSlabM")

    dim_percentile_low: float = Field(default=2.0, alias="dimPercentileLow")
    dim_percentile_high: float = Field(default=98.0, alias="dimPercentileHigh")

    color_mode: int = Field(default=0, alias="colorMode")
    ply_binary: bool = Field(default=True, alias="plyBinary")

    hard_max_z_m: float = Field(default=6.0, alias="hardMaxZM")
    ground_min_height_m: float = Field(default=0.02, alias="groundMinHeightM")

    object_face_percentile: float = Field(default=10.0, alias="objectFacePercentile")


class ControlSettings(_Record):
    """Sensor exposure and gain applied when the device is opened."""

    exposure_us: float = Field(default=20000.0, alias="exposureUs")
    gain_db: float = Field(default=0.0, alias="gainDb")


class DeviceRecord(BaseModel):
    """Identity and behaviour of the device assigned to one slot."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(default=True)
    serial: str = Field(default="")
    name: str = Field(default="")
    orientation: str = Field(default="")
    mount: MountGeometry = Field(default_factory=MountGeometry)
    params: ProcessingParams = Field(default_factory=ProcessingParams)
    control: ControlSettings = Field(default_factory=ControlSettings)

    @property
    def assigned(self) -> bool:
        return bool(self.serial)


class FleetConfig(_Record):
    """Root of the persisted configuration: global settings plus device slots."""

    LEGACY_KEYS: ClassVar[dict[str, tuple[str, ...]]] = {
        "max_fleet_size": ("maxCameras",),
        "auto_add_detected": ("autoAddDetectedCameras",),
    }

    output_dir: str = Field(default=".", alias="outputDir")
    png_dir: str = Field(default="PNG", alias="dirPNG")
    pgm_dir: str = Field(default="PGM", alias="dirPGM")
    ply_dir: str = Field(default="PLY", alias="dirPLY")
    capture_timeout_ms: int = Field(default=5000, ge=0, alias="captureTimeoutMs")

    max_fleet_size: int = Field(default=MAX_FLEET_SIZE, alias="maxFleetSize")
    auto_add_detected: bool = Field(default=True, alias="autoAddDetected")
    auto_name_from_serial: bool = Field(default=True, alias="autoNameFromSerial")
    name_prefix: str = Field(default="BBB", alias="namePrefix")

    default_mount: MountGeometry = Field(default_factory=MountGeometry)
    default_params: ProcessingParams = Field(default_factory=ProcessingParams)
    default_control: ControlSettings = Field(default_factory=ControlSettings)

    devices: list[DeviceRecord] = Field(default_factory=list)

    @field_validator("max_fleet_size")
    @classmethod
    def _clamp_fleet_size(cls, value: int) -> int:
        return clamp_fleet_size(value)

    def auto_name(self, serial: str, slot: int) -> str:
        return make_auto_name(self.name_prefix, serial, slot)

    def serials(self) -> list[str]:
        """Non-empty serials in slot order."""
        return [device.serial for device in self.devices if device.assigned]


__all__ = [
    "ControlSettings",
    "DeviceRecord",
    "FleetConfig",
    "MAX_FLEET_SIZE",
    "MIN_FLEET_SIZE",
    "MountGeometry",
    "ORIENT_LEFT",
    "ORIENT_RIGHT",
    "ORIENT_TOP",
    "ProcessingParams",
    "canonical_orientation",
    "clamp_fleet_size",
    "default_orientation",
    "make_auto_name",
    "sanitize_tag",
]
