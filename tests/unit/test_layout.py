from __future__ import annotations

from pathlib import Path

from stereofleet.core.model import DeviceRecord, FleetConfig
from stereofleet.core.reconciler import reconcile
from stereofleet.layout import (
    artifact_dirs,
    artifact_prefix,
    capture_targets,
    ensure_artifact_directories,
    resolve_output_dir,
)


def _fleet(*serials: str) -> FleetConfig:
    return reconcile(FleetConfig(max_fleet_size=3), list(serials)).config


def test_resolve_output_dir(tmp_path: Path) -> None:
    assert resolve_output_dir(FleetConfig(output_dir="."), tmp_path) == tmp_path
    assert resolve_output_dir(FleetConfig(output_dir="  "), tmp_path) == tmp_path
    assert resolve_output_dir(FleetConfig(output_dir="/srv/captures"), tmp_path) == Path(
        "/srv/captures"
    )


def test_artifact_prefix_prefers_serial_then_name() -> None:
    config = FleetConfig(name_prefix="BBB")
    assert artifact_prefix(config, DeviceRecord(serial="19254011", name="x"), 0) == (
        "BBB19254011_left"
    )
    assert artifact_prefix(config, DeviceRecord(name="Gate 2", orientation="top"), 1) == (
        "Gate_2_top"
    )
    assert artifact_prefix(config, DeviceRecord(), 2) == "BBBUNASSIGNED3_top"
    assert artifact_prefix(config, DeviceRecord(serial="S1", orientation="der"), 0) == "BBBS1_right"


def test_artifact_dirs_use_configured_subdirs(tmp_path: Path) -> None:
    config = FleetConfig(png_dir="rect", pgm_dir="disp", ply_dir="clouds")
    dirs = artifact_dirs(config, DeviceRecord(serial="S1"), 1, output_dir=tmp_path)
    assert dirs.root == tmp_path / "BBBS1_right"
    assert dirs.png == tmp_path / "BBBS1_right" / "rect"
    assert dirs.ply == tmp_path / "BBBS1_right" / "clouds"


def test_ensure_artifact_directories_creates_every_slot(tmp_path: Path) -> None:
    config = _fleet("S1")
    roots = ensure_artifact_directories(config, output_dir=tmp_path)
    assert [root.name for root in roots] == ["BBBS1_left", "BBBUNASSIGNED2_right", "BBBUNASSIGNED3_top"]
    for root in roots:
        assert (root / "PNG").is_dir()
        assert (root / "PGM").is_dir()
        assert (root / "PLY").is_dir()


def test_capture_targets_skip_disabled_and_duplicate_serials(tmp_path: Path) -> None:
    config = _fleet("S1", "S2")
    config.devices[1].enabled = False
    config.devices[2].serial = "S1"

    targets = capture_targets(config, output_dir=tmp_path)

    assert [target.slot for target in targets] == [0]
    assert targets[0].serial == "S1"
    assert targets[0].assigned


def test_capture_targets_report_unassigned_slots(tmp_path: Path) -> None:
    config = _fleet("S1")
    config.devices[0].params.voxel_leaf_m = 0.02

    targets = capture_targets(config, output_dir=tmp_path)

    assert [target.serial for target in targets] == ["S1", "", ""]
    assert not targets[1].assigned
    assert targets[1].name == "BBBUNASSIGNED2"
    assert targets[0].params.voxel_leaf_m == 0.02
    assert targets[0].dirs.root == tmp_path / "BBBS1_left"
