"""Desktop app runtime, view-model, and QML integration."""

from __future__ import annotations

import json
import os
import sys
from importlib import metadata
from pathlib import Path

from PySide6.QtCore import QObject, Property, QTimer, Qt, Signal, Slot
from PySide6.QtGui import QAction, QIcon
from PySide6.QtQml import QQmlApplicationEngine
from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from cryo_core import DiagnosticsExporter, PollController, PollState, build_doctor_payload
from cryo_core.logging_setup import configure_logging, get_logger, install_crash_hooks
from cryo_tec import DeviceStatus, TecError, TecTransport, status_badges
from cryo_telemetry import resolve_hover_index


def _app_version() -> str:
    try:
        return metadata.version("cryo-cooler-controller")
    except Exception:
        return "0.1.0"


class TecViewModel(QObject):
    connectedChanged = Signal()
    stateTextChanged = Signal()
    errorTextChanged = Signal()
    versionTextChanged = Signal()
    tecEnabledChanged = Signal()
    badgesJsonChanged = Signal()
    chartsJsonChanged = Signal()
    portsJsonChanged = Signal()
    inputsChanged = Signal()

    def __init__(self, controller: PollController | None = None, tick_ms: int = 50) -> None:
        super().__init__()
        self.controller = controller or PollController()
        self.logger = get_logger()

        self._app_version = _app_version()
        self._connected = False
        self._state_text = PollState.DISCONNECTED.value
        self._error_text = ""
        self._firmware_text = ""
        self._hardware_text = ""
        self._tec_enabled = False
        self._badges_json = "[]"
        self._charts_json = "[]"
        self._ports_json = "[]"

        self._timer = QTimer(self)
        self._timer.timeout.connect(self._tick)
        self._timer.start(tick_ms)

    def start(self) -> None:
        """Scan ports and reconnect to the last port when the user asked for it."""
        self.refreshPorts()
        data = self.controller.settings.data
        if data.open_port_on_startup and data.last_port:
            self.connectPort(data.last_port)

    @Property(str, constant=True)
    def appVersion(self) -> str:
        return self._app_version

    @Property(bool, notify=connectedChanged)
    def connected(self) -> bool:
        return self._connected

    @Property(str, notify=stateTextChanged)
    def stateText(self) -> str:
        return self._state_text

    @Property(str, notify=errorTextChanged)
    def errorText(self) -> str:
        return self._error_text

    @Property(str, notify=versionTextChanged)
    def firmwareText(self) -> str:
        return self._firmware_text

    @Property(str, notify=versionTextChanged)
    def hardwareText(self) -> str:
        return self._hardware_text

    @Property(bool, notify=tecEnabledChanged)
    def tecEnabled(self) -> bool:
        return self._tec_enabled

    @Property(str, notify=badgesJsonChanged)
    def badgesJson(self) -> str:
        return self._badges_json

    @Property(str, notify=chartsJsonChanged)
    def chartsJson(self) -> str:
        return self._charts_json

    @Property(str, notify=portsJsonChanged)
    def portsJson(self) -> str:
        return self._ports_json

    @Property(str, notify=inputsChanged)
    def lastPort(self) -> str:
        return self.controller.settings.data.last_port or ""

    @Property(float, notify=inputsChanged)
    def pCoef(self) -> float:
        return self.controller.settings.data.tec_inputs.p_coef

    @Property(float, notify=inputsChanged)
    def iCoef(self) -> float:
        return self.controller.settings.data.tec_inputs.i_coef

    @Property(float, notify=inputsChanged)
    def dCoef(self) -> float:
        return self.controller.settings.data.tec_inputs.d_coef

    @Property(float, notify=inputsChanged)
    def setPoint(self) -> float:
        return self.controller.settings.data.tec_inputs.set_point

    @Property(int, notify=inputsChanged)
    def maxPower(self) -> int:
        return self.controller.settings.data.tec_inputs.max_power

    @Property(bool, notify=inputsChanged)
    def enableOnStartup(self) -> bool:
        return self.controller.settings.data.enable_on_startup

    @Property(bool, notify=inputsChanged)
    def openPortOnStartup(self) -> bool:
        return self.controller.settings.data.open_port_on_startup

    def _set_field(self, field: str, value, signal: Signal) -> None:
        if getattr(self, field) != value:
            setattr(self, field, value)
            signal.emit()

    def _sync_status(self) -> None:
        status = self.controller.status
        self._set_field("_connected", status.connected, self.connectedChanged)
        self._set_field("_state_text", f"{status.state.value} {status.port or ''}".strip(), self.stateTextChanged)
        self._set_field("_error_text", status.last_error or "", self.errorTextChanged)

        firmware = f"Firmware Version: {status.firmware}" if status.firmware else ""
        hardware = f"Hardware Version: {status.hardware}" if status.hardware is not None else ""
        if (firmware, hardware) != (self._firmware_text, self._hardware_text):
            self._firmware_text = firmware
            self._hardware_text = hardware
            self.versionTextChanged.emit()

        if status.connected:
            enabled = DeviceStatus.LOW_POWER_MODE_ACTIVE not in status.device_status
            self._set_field("_tec_enabled", enabled, self.tecEnabledChanged)
            self._set_field("_badges_json", json.dumps(status_badges(status.device_status)), self.badgesJsonChanged)

    def _sync_charts(self) -> None:
        telemetry = self.controller.telemetry
        if not telemetry.dirty:
            return
        charts = []
        for window in telemetry:
            low, high = window.bounds
            charts.append(
                {
                    "label": window.label,
                    "unit": window.unit,
                    "min": low,
                    "max": high,
                    "points": [[s.timestamp.timestamp(), s.value] for s in window.oldest_first()],
                }
            )
        telemetry.mark_rendered()
        self._charts_json = json.dumps(charts)
        self.chartsJsonChanged.emit()

    def _tick(self) -> None:
        self.controller.tick()
        self._sync_status()
        self._sync_charts()

    @Slot()
    def refreshPorts(self) -> None:
        ports = [d.device for d in TecTransport.discover()]
        self._set_field("_ports_json", json.dumps(ports), self.portsJsonChanged)

    @Slot(str)
    def connectPort(self, port: str) -> None:
        try:
            self.controller.connect(port.strip() or None)
        except TecError as exc:
            self.logger.warning(f"connect failed: {exc}", extra={"event": "ui_connect_error", "port": port})
        self._sync_status()
        self.inputsChanged.emit()

    @Slot()
    def disconnectPort(self) -> None:
        self.controller.disconnect()
        self._sync_status()

    @Slot()
    def enableTec(self) -> None:
        self.controller.enable()
        self._sync_status()

    @Slot()
    def disableTec(self) -> None:
        self.controller.disable()
        self._sync_status()

    @Slot()
    def closeError(self) -> None:
        self.controller.clear_error()
        self._sync_status()

    @Slot(str, float)
    def setInput(self, name: str, value: float) -> None:
        if name == "max_power":
            value = int(round(value))
        try:
            self.controller.set_setting(name, value)
        except KeyError:
            self.logger.warning(f"unknown input {name}", extra={"event": "ui_unknown_input"})
            return
        self.inputsChanged.emit()
        self._sync_status()

    @Slot(str, bool)
    def setOption(self, name: str, enabled: bool) -> None:
        if name not in ("enable_on_startup", "open_port_on_startup"):
            return
        self.controller.set_setting(name, bool(enabled))
        self.inputsChanged.emit()
        self._sync_status()

    @Slot(int, float, float, float, result=str)
    def hoverCaption(self, chart_index: int, cursor_x: float, viewport_x: float, viewport_width: float) -> str:
        windows = list(self.controller.telemetry)
        if not 0 <= chart_index < len(windows):
            return ""
        window = windows[chart_index]
        index = resolve_hover_index(cursor_x, len(window), viewport_width, viewport_x)
        return window.caption(index)

    @Slot(result=str)
    def exportDiagnostics(self) -> str:
        cfg = self.controller.settings
        bundle = DiagnosticsExporter().bundle(
            cfg=cfg,
            doctor_payload=build_doctor_payload(cfg),
            recent_poll_events=self.controller.recent_events(),
            poll_status=self.controller.status,
        )
        self.logger.info(f"diagnostics exported to {bundle}", extra={"event": "diagnostics_export"})
        return str(bundle)

    def shutdown(self) -> None:
        self._timer.stop()
        self.controller.disconnect()


def run_gui() -> int:
    configure_logging()
    install_crash_hooks()
    logger = get_logger()

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    QApplication.setHighDpiScaleFactorRoundingPolicy(Qt.HighDpiScaleFactorRoundingPolicy.PassThrough)

    app = QApplication(sys.argv)
    app.setApplicationName("Cryo Cooler Controller")
    app.setQuitOnLastWindowClosed(False)

    vm = TecViewModel()

    engine = QQmlApplicationEngine()
    engine.rootContext().setContextProperty("vm", vm)
    engine.load(str(Path(__file__).with_name("qml") / "Main.qml"))

    if not engine.rootObjects():
        logger.error("failed to load QML")
        return 1
    window = engine.rootObjects()[0]
    vm.start()

    tray = None
    if QSystemTrayIcon.isSystemTrayAvailable():
        tray = QSystemTrayIcon(QIcon.fromTheme("weather-snow"), app)
        tray.setToolTip("Cryo Cooler Controller")
        menu = QMenu()

        show_action = QAction("Show", menu)
        show_action.triggered.connect(window.show)
        menu.addAction(show_action)

        hide_action = QAction("Hide", menu)
        hide_action.triggered.connect(window.hide)
        menu.addAction(hide_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(app.quit)
        menu.addAction(quit_action)

        tray.setContextMenu(menu)
        tray.show()
    else:
        app.setQuitOnLastWindowClosed(True)

    exit_code = app.exec()
    vm.shutdown()
    logger.info("app shutdown", extra={"event": "shutdown"})
    return int(exit_code)
