from __future__ import annotations

import pytest

from stereofleet.core.model import (
    DeviceRecord,
    FleetConfig,
    ProcessingParams,
    canonical_orientation,
    default_orientation,
    make_auto_name,
    sanitize_tag,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("left", "left"),
        (" IZQ ", "left"),
        ("Izquierda", "left"),
        ("right", "right"),
        ("der", "right"),
        ("DERECHA", "right"),
        ("top", "top"),
        ("cenital", "top"),
        ("cen", "top"),
        ("", ""),
        ("  ", ""),
        ("Front Door/2", "front_door_2"),
    ],
)
def test_canonical_orientation(raw: str, expected: str) -> None:
    assert canonical_orientation(raw) == expected


def test_default_orientation_by_slot() -> None:
    assert [default_orientation(slot) for slot in range(4)] == ["left", "right", "top", "top"]


def test_make_auto_name() -> None:
    assert make_auto_name("BBB", "1925", 0) == "BBB1925"
    assert make_auto_name("BBB", "", 1) == "BBBUNASSIGNED2"


def test_sanitize_tag_fallback() -> None:
    assert sanitize_tag("a b.c") == "a_b_c"
    assert sanitize_tag("", "BBB") == "BBB"


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (-4, 1), (2, 2), (3, 3), (9, 3)])
def test_fleet_size_is_clamped(raw: int, expected: int) -> None:
    assert FleetConfig(max_fleet_size=raw).max_fleet_size == expected


def test_fleet_config_accepts_persisted_keys() -> None:
    config = FleetConfig.model_validate({"maxFleetSize": 2, "namePrefix": "CAM"})
    assert config.max_fleet_size == 2
    assert config.name_prefix == "CAM"
    assert config.devices == []


def test_persisted_fields_follow_declaration_order() -> None:
    keys = [key for _, key, _ in FleetConfig.persisted_fields()]
    assert keys == [
        "outputDir",
        "dirPNG",
        "dirPGM",
        "dirPLY",
        "captureTimeoutMs",
        "maxFleetSize",
        "autoAddDetected",
        "autoNameFromSerial",
        "namePrefix",
    ]
    params_keys = [key for _, key, _ in ProcessingParams.persisted_fields()]
    assert params_keys[0] == "minRangeM"
    assert params_keys[-1] == "objectFacePercentile"
    assert len(params_keys) == 31


def test_fleet_serials_skip_unassigned() -> None:
    config = FleetConfig(
        devices=[DeviceRecord(serial="A"), DeviceRecord(), DeviceRecord(serial="C")]
    )
    assert config.serials() == ["A", "C"]
    assert config.devices[0].assigned
    assert not config.devices[1].assigned
