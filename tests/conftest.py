from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from stereofleet.core.model import FleetConfig


def _write_ini(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


@pytest.fixture
def write_ini():
    return _write_ini


@pytest.fixture
def sample_ini_path(tmp_path: Path) -> Path:
    """
    Provide a fleet file with two assigned slots and one per-device override.
    """

    path = tmp_path / "fleet_config.ini"
    content = """
    ; fleet configuration
    [General]
    outputDir = captures
    captureTimeoutMs = 3000
    maxFleetSize = 3
    autoAddDetected = yes
    autoNameFromSerial = on
    namePrefix = CAM

    [Defaults]
    heightM = 2.0
    pitchDeg = -15

    [Defaults.Params]
    minRangeM = 0.5
    decimationFactor = 4

    [Defaults.Control]
    exposureUs = 15000

    [Device.0]
    enabled = 1
    serial = SN100
    name = Dock left   # operator label
    orientation = Izquierda

    [Device.1]
    serial = SN200
    side = derecha
    heightM = 2.5

    [Device.1.Params]
    voxelLeafM = 0.02
    """
    _write_ini(path, content)
    return path


@pytest.fixture
def empty_fleet() -> FleetConfig:
    return FleetConfig(max_fleet_size=3)
