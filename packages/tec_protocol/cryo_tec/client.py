"""Request/response client for the TEC controller board."""

from __future__ import annotations

import logging
import struct
from datetime import datetime, timezone

from .errors import ChecksumError, ProtocolMismatch, TecError, TecIOError
from .frame import FRAME_SIZE, ZERO_PAYLOAD, Response, TecCommand, checksum, decode, encode, expected_response_op
from .models import DeviceStatus, FirmwareVersion, MonitoringData, decode_status
from .transport import TecTransport


# Raw ADC counts per volt / per ampere.
VOLTAGE_DIVISOR = 21.1
CURRENT_DIVISOR = 4.6545

_log = logging.getLogger("cryo_cooler.protocol")


def _f32(value: float) -> bytes:
    return struct.pack("<f", float(value))


class TecClient:
    """Single owner of the serial handle; every call is one blocking exchange.

    Nothing here retries. A failed exchange raises one of the ``TecError``
    subclasses and the caller decides whether to ``reset_connection()``.
    """

    def __init__(self, transport: TecTransport) -> None:
        self.transport = transport

    @classmethod
    def open(cls, port: str, transport: TecTransport | None = None, timeout_ms: int = 500) -> "TecClient":
        """Open the port and bring the board into an initialised state."""
        transport = transport or TecTransport()
        transport.open(port=port, baud=115200, timeout_ms=timeout_ms)
        client = cls(transport)
        try:
            status = client.heartbeat()
            if DeviceStatus.BOARD_INIT not in status:
                _log.info("board not initialised, resetting", extra={"event": "board_reset", "status": int(status)})
                client.reset()
        except TecError:
            transport.close()
            raise
        return client

    def close(self) -> None:
        self.transport.close()

    def reset_connection(self) -> None:
        self.transport.reopen()
        _log.info("serial connection reopened", extra={"event": "connection_reset"})

    def send(self, op_code: int, payload: bytes = ZERO_PAYLOAD) -> Response:
        request = encode(op_code, payload)
        written = self.transport.write(request)
        if written != FRAME_SIZE:
            raise TecIOError(f"Short write: {written} of {FRAME_SIZE} bytes")

        raw = self.transport.read(FRAME_SIZE)
        if len(raw) != FRAME_SIZE:
            raise TecIOError(f"Short read: {len(raw)} of {FRAME_SIZE} bytes")
        _log.debug("exchange %s -> %s", request.hex(), raw.hex())

        response = decode(raw)
        if response.op_code != expected_response_op(op_code):
            _log.warning("op code mismatch", extra={"event": "op_mismatch", "request": int(op_code)})
            raise ProtocolMismatch(int(op_code), response.op_code)
        if checksum(raw[:6]) != response.checksum:
            _log.warning("checksum mismatch", extra={"event": "bad_crc", "request": int(op_code)})
            raise ChecksumError("Response contained incorrect crc")
        return response

    def _read_f32(self, command: TecCommand) -> float:
        return struct.unpack("<f", self.send(command).payload)[0]

    def _read_u32(self, command: TecCommand) -> int:
        return int.from_bytes(self.send(command).payload, "little")

    def heartbeat(self) -> DeviceStatus:
        return decode_status(self._read_u32(TecCommand.HEART_BEAT))

    def reset(self) -> None:
        self.send(TecCommand.RESET_BOARD)

    def tec_temperature(self) -> float:
        return self._read_f32(TecCommand.GET_TEC_TEMPERATURE)

    def board_temperature(self) -> float:
        return self._read_f32(TecCommand.GET_BOARD_TEMP)

    def humidity(self) -> float:
        return self._read_f32(TecCommand.GET_HUMIDITY)

    def dew_point_temperature(self) -> float:
        return self._read_f32(TecCommand.GET_DEW_POINT)

    def tec_voltage(self) -> float:
        return self._read_u32(TecCommand.GET_TEC_VOLTAGE) / VOLTAGE_DIVISOR

    def tec_current(self) -> float:
        return self._read_u32(TecCommand.GET_TEC_CURRENT) / CURRENT_DIVISOR

    def tec_power_level(self) -> int:
        return self.send(TecCommand.GET_TEC_POWER_LEVEL).payload[0]

    def p_coefficient(self) -> float:
        return self._read_f32(TecCommand.GET_P_COEFFICIENT)

    def i_coefficient(self) -> float:
        return self._read_f32(TecCommand.GET_I_COEFFICIENT)

    def d_coefficient(self) -> float:
        return self._read_f32(TecCommand.GET_D_COEFFICIENT)

    def setpoint_offset(self) -> float:
        # Firmware reports the offset as an integer word.
        return float(self._read_u32(TecCommand.GET_SETPOINT_OFFSET))

    def hardware_version(self) -> int:
        return self._read_u32(TecCommand.GET_HW_VERSION)

    def firmware_version(self) -> FirmwareVersion:
        data = self.send(TecCommand.GET_FW_VERSION).payload
        return FirmwareVersion(major=data[0], minor=data[1], patch=data[2], build=data[3])

    def monitor(self) -> MonitoringData:
        timestamp = datetime.now(timezone.utc)
        return MonitoringData(
            timestamp=timestamp,
            tec_temperature=self.tec_temperature(),
            pcb_temperature=self.board_temperature(),
            humidity=self.humidity(),
            dew_point_temperature=self.dew_point_temperature(),
            tec_voltage=self.tec_voltage(),
            tec_current=self.tec_current(),
            tec_power_level=self.tec_power_level(),
        )

    def set_power_level(self, power_level: int) -> None:
        if not 0 <= int(power_level) <= 0xFF:
            raise ValueError("Power level must fit in one byte")
        self.send(TecCommand.SET_TEC_POWER_LEVEL, bytes([int(power_level), 0, 0, 0]))

    def set_setpoint_offset(self, setpoint: float) -> None:
        self.send(TecCommand.SET_SETPOINT_OFFSET, _f32(setpoint))

    def set_pid(self, p: float, i: float, d: float) -> None:
        # Three separate writes; a failure part-way leaves earlier ones applied.
        self.send(TecCommand.SET_P_COEFFICIENT, _f32(p))
        self.send(TecCommand.SET_I_COEFFICIENT, _f32(i))
        self.send(TecCommand.SET_D_COEFFICIENT, _f32(d))

    def enable(self, p: float, i: float, d: float, max_power: int, setpoint: float) -> None:
        self.set_power_level(max_power)
        self.set_setpoint_offset(setpoint)
        self.set_pid(p, i, d)
        self.send(TecCommand.SET_DISABLE_NOT_ENABLE, bytes([0, 0, 0, 0]))

    def disable(self) -> None:
        self.send(TecCommand.SET_DISABLE_NOT_ENABLE, bytes([1, 0, 0, 0]))
