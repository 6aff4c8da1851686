from __future__ import annotations

import threading
from pathlib import Path

import pytest

from stereofleet.core.codec import ConfigError
from stereofleet.core.model import ControlSettings
from stereofleet.core.service import FleetConfigService
from stereofleet.core.store import load_fleet_config


def test_load_or_create_persists_defaults(tmp_path: Path) -> None:
    path = tmp_path / "conf" / "fleet_config.ini"
    service = FleetConfigService(path)

    assert service.load_or_create() is False
    assert path.exists()
    created = service.snapshot
    assert len(created.devices) == 3
    assert [device.orientation for device in created.devices] == ["left", "right", "top"]

    assert service.load_or_create() is True
    assert service.snapshot == created
    assert len(service.snapshot.devices) == 3


def test_reconcile_saves_only_when_changed(tmp_path: Path) -> None:
    path = tmp_path / "fleet_config.ini"
    service = FleetConfigService(path)
    service.load_or_create()

    result = service.reconcile(["SN1"])
    assert result.changed is True
    reloaded, _ = load_fleet_config(path)
    assert reloaded.devices[0].serial == "SN1"

    path.unlink()
    assert service.reconcile(["SN1"]).changed is False
    assert not path.exists()


def test_reconcile_without_save(tmp_path: Path) -> None:
    path = tmp_path / "fleet_config.ini"
    service = FleetConfigService(path)
    service.load_or_create()
    service.reconcile(["SN1"], save=False)

    assert service.snapshot.devices[0].serial == "SN1"
    reloaded, _ = load_fleet_config(path)
    assert reloaded.devices[0].serial == ""


def test_snapshot_is_a_copy(tmp_path: Path) -> None:
    service = FleetConfigService(tmp_path / "fleet.ini")
    service.load_or_create()
    snapshot = service.snapshot
    snapshot.devices[0].serial = "tampered"
    assert service.snapshot.devices[0].serial == ""


def test_update_device_applies_and_persists(tmp_path: Path) -> None:
    path = tmp_path / "fleet.ini"
    service = FleetConfigService(path)
    service.load_or_create()

    updated = service.update_device(
        1, name="Gate", orientation="cenital", control=ControlSettings(gain_db=6.0)
    )
    assert updated.orientation == "top"
    assert service.save() is True

    reloaded, _ = load_fleet_config(path)
    assert reloaded.devices[1].name == "Gate"
    assert reloaded.devices[1].control.gain_db == 6.0
    assert "[Device.1.Control]" in path.read_text(encoding="utf-8")


def test_update_device_rejects_invalid_edits(tmp_path: Path) -> None:
    service = FleetConfigService(tmp_path / "fleet.ini")
    service.load_or_create()
    service.reconcile(["SN1"], save=False)

    with pytest.raises(IndexError):
        service.update_device(5, name="x")
    with pytest.raises(KeyError):
        service.update_device(0, colour="red")
    with pytest.raises(ConfigError):
        service.update_device(1, serial="SN1")
    with pytest.raises(ConfigError):
        service.update_device(1, params={"decimation_factor": "many"})


@pytest.mark.parametrize(
    "changes",
    [{"name": "Bay #2"}, {"name": "Dock; left"}, {"serial": "SN#1"}],
)
def test_update_device_rejects_comment_markers(tmp_path: Path, changes: dict[str, str]) -> None:
    service = FleetConfigService(tmp_path / "fleet.ini")
    service.load_or_create()

    with pytest.raises(ConfigError):
        service.update_device(0, **changes)
    assert service.snapshot.devices[0].name == "BBBUNASSIGNED1"


def test_update_device_name_survives_reload(tmp_path: Path) -> None:
    path = tmp_path / "fleet.ini"
    service = FleetConfigService(path)
    service.load_or_create()

    service.update_device(0, name="Bay 2")
    service.save()

    reloaded, _ = load_fleet_config(path)
    assert reloaded.devices[0].name == "Bay 2"


def test_concurrent_reconciles_keep_serials_unique(tmp_path: Path) -> None:
    service = FleetConfigService(tmp_path / "fleet.ini")
    service.load_or_create()

    batches = [["A", "B"], ["B", "C"], ["C", "A"], ["D"]]
    threads = [
        threading.Thread(target=service.reconcile, args=(batch,), kwargs={"save": False})
        for batch in batches
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    serials = service.snapshot.serials()
    assert len(serials) == 3
    assert len(set(serials)) == 3
