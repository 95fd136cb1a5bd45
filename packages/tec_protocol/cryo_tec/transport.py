"""Serial transport for the TEC controller board."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import TecIOError
from .models import SerialDevice

try:
    import serial  # type: ignore
    from serial.tools import list_ports  # type: ignore
except Exception:  # pragma: no cover
    serial = None
    list_ports = None


@dataclass(frozen=True)
class SerialConfig:
    port: str
    baud: int = 115200
    timeout_ms: int = 500


class TecTransport:
    """Thin wrapper over pyserial fixed to 8-N-1 without flow control."""

    def __init__(self) -> None:
        self._serial: Any | None = None
        self.config: SerialConfig | None = None

    @property
    def is_open(self) -> bool:
        return bool(self._serial and self._serial.is_open)

    def open(self, port: str, baud: int = 115200, timeout_ms: int = 500) -> None:
        if serial is None:
            raise TecIOError("pyserial is required")
        if self.is_open:
            return
        self.config = SerialConfig(port=port, baud=baud, timeout_ms=timeout_ms)
        try:
            self._serial = serial.Serial(
                port=port,
                baudrate=baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=max(timeout_ms, 1) / 1000,
                write_timeout=max(timeout_ms, 1) / 1000,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
        except (OSError, ValueError) as exc:
            self._serial = None
            raise TecIOError(f"Failed to open {port}: {exc}") from exc

    def reopen(self) -> None:
        """Replace the handle with a fresh one using the last configuration."""
        if self.config is None:
            raise TecIOError("Serial port was never opened")
        config = self.config
        self.close()
        self.open(port=config.port, baud=config.baud, timeout_ms=config.timeout_ms)

    def close(self) -> None:
        if self._serial is not None:
            try:
                self._serial.close()
            finally:
                self._serial = None

    def write(self, payload: bytes) -> int:
        if not self.is_open:
            raise TecIOError("Serial port is not open")
        try:
            written = self._serial.write(payload)
        except OSError as exc:
            raise TecIOError(f"Serial write failed: {exc}") from exc
        return int(written or 0)

    def read(self, max_len: int) -> bytes:
        if not self.is_open:
            raise TecIOError("Serial port is not open")
        try:
            return bytes(self._serial.read(max_len))
        except OSError as exc:
            raise TecIOError(f"Serial read failed: {exc}") from exc

    def flush_input(self) -> None:
        if self.is_open:
            self._serial.reset_input_buffer()

    @staticmethod
    def discover() -> list[SerialDevice]:
        if list_ports is None:
            return []
        devices: list[SerialDevice] = []
        for item in list_ports.comports():
            devices.append(
                SerialDevice(
                    device=item.device,
                    description=item.description,
                    hwid=item.hwid,
                    vid=item.vid,
                    pid=item.pid,
                )
            )
        return devices
