"""Typed models for TEC status, telemetry snapshots and serial devices."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntFlag

from .errors import InvalidStatus


STATUS_MASK = (1 << 18) - 1


class DeviceStatus(IntFlag):
    BOARD_INIT = 1 << 0
    POWER_OK = 1 << 1
    TEMP_SENSE_OK = 1 << 2
    HUM_SENSE_OK = 1 << 3
    LAST_CMD_OK = 1 << 4
    LAST_CMD_BAD_CRC = 1 << 5
    LAST_CMD_INCOMPLETE = 1 << 6
    FAILSAFE_ACTIVE = 1 << 7
    PID_READY = 1 << 8
    PID_INVALID = 1 << 9
    PID_OUT_OF_RANGE = 1 << 10
    PID_DEFAULT = 1 << 11
    PID_RUNNING = 1 << 12
    OCP_ACTIVE = 1 << 13
    BOARD_TEMP_OK = 1 << 14
    TEC_CONN_OK = 1 << 15
    LOW_POWER_MODE_ACTIVE = 1 << 16
    TEMP_MODE = 1 << 17


_KNOWN_BITS = sum(int(flag) for flag in DeviceStatus)


def decode_status(raw: int) -> DeviceStatus:
    """Decode the heartbeat payload word; bits above the mask are dropped."""
    masked = int(raw) & STATUS_MASK
    unknown = masked & ~_KNOWN_BITS
    if unknown:
        raise InvalidStatus(f"Status bit pattern invalid: {raw:b}")
    return DeviceStatus(masked)


def status_flags(status: DeviceStatus) -> list[str]:
    return [flag.name for flag in DeviceStatus if flag in status]


def status_badges(status: DeviceStatus) -> list[str]:
    """Alert texts shown next to the controls, worst problems first."""
    badges: list[str] = []
    for flag, text in (
        (DeviceStatus.POWER_OK, "TEC NO POWER"),
        (DeviceStatus.TEMP_SENSE_OK, "TEMP SENSOR ERROR"),
        (DeviceStatus.HUM_SENSE_OK, "HUM SENSOR ERROR"),
    ):
        if flag not in status:
            badges.append(text)
    for flag, text in (
        (DeviceStatus.PID_OUT_OF_RANGE, "PID OUT OF RANGE"),
        (DeviceStatus.PID_INVALID, "PID INVALID"),
        (DeviceStatus.OCP_ACTIVE, "OCP ACTIVE"),
    ):
        if flag in status:
            badges.append(text)
    badges.append("TEC DISABLED" if DeviceStatus.LOW_POWER_MODE_ACTIVE in status else "TEC ENABLED")
    return badges


@dataclass(frozen=True)
class FirmwareVersion:
    major: int
    minor: int
    patch: int
    build: int

    def __str__(self) -> str:
        return f"{self.major:X}.{self.minor:X}"


@dataclass(frozen=True)
class MonitoringData:
    timestamp: datetime
    tec_temperature: float
    pcb_temperature: float
    humidity: float
    dew_point_temperature: float
    tec_voltage: float
    tec_current: float
    tec_power_level: int


@dataclass(frozen=True)
class SerialDevice:
    device: str
    description: str
    hwid: str
    vid: int | None
    pid: int | None
