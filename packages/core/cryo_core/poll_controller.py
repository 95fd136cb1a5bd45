"""Poll driver: connects to the cooler, samples it on a cadence and recovers the link."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from cryo_tec import DeviceStatus, FirmwareVersion, MonitoringData, TecClient, TecError, TecIOError
from cryo_telemetry import TelemetryGroup

from .config import AppSettings, SettingsError, load_settings, update_settings
from .logging_setup import get_logger, log_event


class PollState(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    POLLING = "Polling"
    RECOVERING = "Recovering"
    STALE = "Stale"


@dataclass
class PollStatus:
    connected: bool = False
    port: str | None = None
    state: PollState = PollState.DISCONNECTED
    device_status: DeviceStatus = DeviceStatus(0)
    firmware: FirmwareVersion | None = None
    hardware: int | None = None
    last_data: MonitoringData | None = None
    last_error: str | None = None
    sample_count: int = 0
    recoveries: int = 0


class PollController:
    def __init__(
        self,
        settings: AppSettings | None = None,
        settings_file: Path | None = None,
        poll_ms: int = 500,
        client_factory: Callable[[str], TecClient] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings_file = settings_file
        self.settings = settings if settings is not None else load_settings(settings_file)
        self.poll_ms = poll_ms
        self.telemetry = TelemetryGroup()

        self._client_factory = client_factory or TecClient.open
        self._clock = clock
        self._client: TecClient | None = None
        self._status = PollStatus()
        self._events: list[dict[str, Any]] = []
        self._last_sample = clock()
        self._log = get_logger("poll")

    @property
    def status(self) -> PollStatus:
        return self._status

    @property
    def error_text(self) -> str | None:
        return self._status.last_error

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        return self._events[-limit:]

    def _log_event(self, event: str, level: int = logging.INFO, **fields: Any) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "state": self._status.state.value,
        }
        row.update(fields)
        self._events.append(row)
        if len(self._events) > 1000:
            self._events = self._events[-1000:]
        log_event(self._log, level, event, **fields)

    def _set_error(self, text: str) -> None:
        self._status.last_error = text

    def clear_error(self) -> None:
        self._status.last_error = None

    def connect(self, port: str | None = None, apply_startup: bool = True) -> PollStatus:
        port = port or self.settings.data.last_port
        if not port:
            raise TecIOError("No serial port selected")

        self.disconnect()
        self._status.state = PollState.CONNECTING
        self._log_event("connect_start", port=port)
        self.set_setting("last_port", port)

        client: TecClient | None = None
        try:
            client = self._client_factory(port)
            firmware = client.firmware_version()
            hardware = client.hardware_version()
            device_status = client.heartbeat()
        except TecError as exc:
            if client is not None:
                client.close()
            self._status.state = PollState.DISCONNECTED
            self._set_error(f"Error connecting to Port {port} ({exc})")
            self._log_event("connect_error", logging.WARNING, port=port, error=str(exc))
            raise

        self._client = client
        self._status.connected = True
        self._status.port = port
        self._status.firmware = firmware
        self._status.hardware = hardware
        self._status.device_status = device_status
        self._status.state = PollState.POLLING
        self._last_sample = self._clock()
        self._log_event("connect_ok", port=port, firmware=str(firmware), hardware=hardware)

        if apply_startup and self.settings.data.enable_on_startup:
            self.enable()
        return self._status

    def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._status.connected = False
        self._status.state = PollState.DISCONNECTED
        self._log_event("disconnect")

    def should_update(self) -> bool:
        return (self._clock() - self._last_sample) * 1000 > self.poll_ms

    def _reset_link(self, client: TecClient) -> TecError | None:
        """Reopen the serial handle; returns the failure, if any."""
        try:
            client.reset_connection()
        except TecError as exc:
            self._log_event("recover_error", logging.ERROR, error=str(exc))
            return exc
        self._status.recoveries += 1
        return None

    def tick(self, force: bool = False) -> bool:
        """Run one heartbeat+monitor round; returns True when a new sample was recorded.

        Failures never clear the previous status or telemetry.
        """
        client = self._client
        if client is None:
            return False
        if not force and not self.should_update():
            return False

        self._last_sample = self._clock()
        recovered = False
        try:
            self._status.device_status = client.heartbeat()
        except TecError as exc:
            reset_error = self._reset_link(client)
            if reset_error is not None:
                self._status.state = PollState.STALE
                self._set_error(f"Failed to communicate with cooler ({reset_error})")
                return False
            recovered = True
            self._set_error(f"Failed to communicate with cooler ({exc})")
            self._log_event("recover_ok", logging.WARNING, error=str(exc))

        try:
            data = client.monitor()
        except TecError as exc:
            self._status.state = PollState.STALE
            self._set_error(f"Failed to get data from cooler ({exc})")
            self._log_event("monitor_error", logging.WARNING, error=str(exc))
            # The next heartbeat runs on the fresh handle.
            self._reset_link(client)
            return False

        self.telemetry.update(data)
        self._status.last_data = data
        self._status.sample_count += 1
        self._status.state = PollState.RECOVERING if recovered else PollState.POLLING
        return True

    def enable(self) -> bool:
        if self._client is None:
            self._set_error("Failed to enable TEC (not connected)")
            return False
        inputs = self.settings.data.tec_inputs
        try:
            self._client.enable(inputs.p_coef, inputs.i_coef, inputs.d_coef, inputs.max_power, inputs.set_point)
        except TecError as exc:
            self._set_error(f"Failed to enable TEC ({exc})")
            self._log_event("enable_error", logging.WARNING, error=str(exc))
            return False
        self._log_event("enable", p=inputs.p_coef, i=inputs.i_coef, d=inputs.d_coef, max_power=inputs.max_power)
        return True

    def disable(self) -> bool:
        if self._client is None:
            self._set_error("Failed to disable TEC (not connected)")
            return False
        try:
            self._client.disable()
        except TecError as exc:
            self._set_error(f"Failed to disable TEC ({exc})")
            self._log_event("disable_error", logging.WARNING, error=str(exc))
            return False
        self._log_event("disable")
        return True

    def set_setting(self, name: str, value: Any) -> bool:
        try:
            return update_settings(self.settings, self.settings_file, **{name: value})
        except SettingsError as exc:
            self._set_error(str(exc))
            self._log_event("settings_error", logging.WARNING, error=str(exc))
            return False
