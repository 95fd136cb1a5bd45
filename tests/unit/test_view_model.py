from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "apps" / "desktop"))
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "tec_protocol"))
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtCore = pytest.importorskip("PySide6.QtCore")

from cryo_core import AppSettings, PollController
from cryo_tec import DeviceStatus, FirmwareVersion, MonitoringData

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
_APP = None


class FakeClient:
    def __init__(self) -> None:
        self.samples = 0
        self.calls: list[str] = []

    def firmware_version(self):
        return FirmwareVersion(1, 0x0B, 0, 0)

    def hardware_version(self):
        return 2

    def heartbeat(self):
        return DeviceStatus.BOARD_INIT | DeviceStatus.POWER_OK | DeviceStatus.LOW_POWER_MODE_ACTIVE

    def monitor(self):
        self.samples += 1
        return MonitoringData(
            timestamp=T0 + timedelta(seconds=self.samples),
            tec_temperature=5.0,
            pcb_temperature=25.0,
            humidity=50.0,
            dew_point_temperature=11.0,
            tec_voltage=12.0,
            tec_current=2.0,
            tec_power_level=30,
        )

    def enable(self, *args):
        self.calls.append("enable")

    def disable(self):
        self.calls.append("disable")

    def close(self):
        pass


@pytest.fixture()
def view_model(tmp_path):
    global _APP
    _APP = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    from cryo_app.app import TecViewModel

    now = [0.0]
    client = FakeClient()
    controller = PollController(
        settings=AppSettings(),
        settings_file=tmp_path / "cryo_settings.json",
        client_factory=lambda port: client,
        clock=lambda: now[0],
    )
    vm = TecViewModel(controller=controller, tick_ms=1000)
    yield vm, client, now
    vm.shutdown()


def test_connect_populates_versions_and_badges(view_model) -> None:
    vm, _client, _now = view_model
    vm.connectPort("COM3")

    assert vm.connected
    assert vm.firmwareText == "Firmware Version: 1.B"
    assert vm.hardwareText == "Hardware Version: 2"
    assert not vm.tecEnabled
    assert json.loads(vm.badgesJson) == ["TEMP SENSOR ERROR", "HUM SENSOR ERROR", "TEC DISABLED"]
    assert vm.lastPort == "COM3"


def test_tick_publishes_charts_once_per_sample(view_model) -> None:
    vm, _client, now = view_model
    vm.connectPort("COM3")
    emitted: list[int] = []
    vm.chartsJsonChanged.connect(lambda: emitted.append(1))

    now[0] = 1.0
    vm._tick()
    vm._tick()

    charts = json.loads(vm.chartsJson)
    assert len(emitted) == 1
    assert [c["label"] for c in charts][:2] == ["TEC Temp", "TEC Voltage"]
    assert len(charts[0]["points"]) == 1
    assert vm.hoverCaption(0, 100.0, 0.0, 100.0) == "TEC Temp  -  5.00 C"
    assert vm.hoverCaption(0, 50.0, 0.0, 0.0) == "TEC Temp"
    assert vm.hoverCaption(42, 0.0, 0.0, 100.0) == ""


def test_inputs_and_toggle(view_model) -> None:
    vm, client, _now = view_model
    vm.connectPort("COM3")

    vm.setInput("max_power", 61.6)
    vm.setOption("enable_on_startup", True)
    assert vm.maxPower == 62
    assert vm.enableOnStartup

    vm.enableTec()
    vm.disableTec()
    assert client.calls == ["enable", "disable"]


def test_export_diagnostics_writes_bundle(view_model, tmp_path, monkeypatch) -> None:
    from cryo_core import diagnostics, logging_setup

    vm, _client, _now = view_model
    monkeypatch.setattr(logging_setup, "config_root", lambda: tmp_path / "cfg")
    monkeypatch.setattr(diagnostics.TecTransport, "discover", staticmethod(lambda: []))
    monkeypatch.setattr(diagnostics.tempfile, "gettempdir", lambda: str(tmp_path / "out"))
    vm.connectPort("COM3")

    bundle = Path(vm.exportDiagnostics())
    assert bundle.parent == tmp_path / "out"
    assert bundle.exists()
