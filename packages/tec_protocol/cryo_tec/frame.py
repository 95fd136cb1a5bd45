"""Fixed 8-byte request/response frame codec for the TEC controller board."""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from enum import IntEnum


FRAME_MARKER = 0xAA
FRAME_SIZE = 8
PAYLOAD_SIZE = 4
ZERO_PAYLOAD = bytes(PAYLOAD_SIZE)


class TecCommand(IntEnum):
    HEART_BEAT = 0x00

    GET_TEC_TEMPERATURE = 0x01
    GET_HUMIDITY = 0x02
    GET_DEW_POINT = 0x03
    GET_SETPOINT_OFFSET = 0x04
    GET_P_COEFFICIENT = 0x05
    GET_I_COEFFICIENT = 0x06
    GET_D_COEFFICIENT = 0x07
    GET_TEC_POWER_LEVEL = 0x08
    GET_HW_VERSION = 0x09
    GET_FW_VERSION = 0x0A
    GET_NTC_COEFFICIENT = 0x1B
    GET_BOARD_TEMP = 0x1F
    GET_VOLTAGE_AND_CURRENT = 0x22
    GET_TEC_VOLTAGE = 0x23
    GET_TEC_CURRENT = 0x24

    SET_SETPOINT_OFFSET = 0x14
    SET_P_COEFFICIENT = 0x15
    SET_I_COEFFICIENT = 0x16
    SET_D_COEFFICIENT = 0x17
    SET_DISABLE_NOT_ENABLE = 0x18
    SET_CPU_TEMP = 0x19
    SET_TEMP_SENSOR = 0x1C
    SET_TEC_POWER_LEVEL = 0x1D
    RESET_BOARD = 0x1E
    SET_NTC_COEFFICIENT = 0x20


@dataclass(frozen=True)
class Frame:
    marker: int
    op_code: int
    payload: bytes
    checksum: int


# Requests and responses share one layout.
Request = Frame
Response = Frame


def checksum(data: bytes) -> int:
    """CRC-16/XMODEM (poly 0x1021, init 0x0000)."""
    return binascii.crc_hqx(data, 0x0000) & 0xFFFF


def expected_response_op(op_code: int) -> int:
    return (int(op_code) + 127) & 0xFF


def _check_payload(payload: bytes) -> bytes:
    payload = bytes(payload)
    if len(payload) != PAYLOAD_SIZE:
        raise ValueError(f"Payload must be {PAYLOAD_SIZE} bytes, got {len(payload)}")
    return payload


def build_request(op_code: int, payload: bytes = ZERO_PAYLOAD) -> Request:
    payload = _check_payload(payload)
    if not 0 <= int(op_code) <= 0xFF:
        raise ValueError("Op code must fit in one byte")
    head = bytes([FRAME_MARKER, int(op_code)]) + payload
    return Request(marker=FRAME_MARKER, op_code=int(op_code), payload=payload, checksum=checksum(head))


def to_bytes(frame: Frame) -> bytes:
    return bytes([frame.marker, frame.op_code]) + frame.payload + frame.checksum.to_bytes(2, "little")


def encode(op_code: int, payload: bytes = ZERO_PAYLOAD) -> bytes:
    return to_bytes(build_request(op_code, payload))


def decode(buffer: bytes) -> Response:
    """Split a received buffer into its fields. Validation is left to the caller."""
    if len(buffer) != FRAME_SIZE:
        raise ValueError(f"Frame must be {FRAME_SIZE} bytes, got {len(buffer)}")
    return Response(
        marker=buffer[0],
        op_code=buffer[1],
        payload=bytes(buffer[2:6]),
        checksum=int.from_bytes(buffer[6:8], "little"),
    )


def command_name(op_code: int) -> str:
    try:
        return TecCommand(op_code).name
    except ValueError:
        return f"UNKNOWN_0x{op_code:02X}"
