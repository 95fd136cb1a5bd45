"""Serial protocol client for the cryo cooler TEC controller board."""

from .errors import ChecksumError, InvalidStatus, ProtocolMismatch, TecError, TecIOError
from .frame import Frame, Request, Response, TecCommand, checksum, decode, encode
from .models import DeviceStatus, FirmwareVersion, MonitoringData, SerialDevice, decode_status, status_badges
from .replay import ReplayEvent, ReplayReport, ReplayRunner
from .transport import TecTransport
from .client import TecClient

__all__ = [
    "ChecksumError",
    "DeviceStatus",
    "FirmwareVersion",
    "Frame",
    "InvalidStatus",
    "MonitoringData",
    "ProtocolMismatch",
    "ReplayEvent",
    "ReplayReport",
    "ReplayRunner",
    "Request",
    "Response",
    "SerialDevice",
    "TecClient",
    "TecCommand",
    "TecError",
    "TecIOError",
    "TecTransport",
    "checksum",
    "decode",
    "decode_status",
    "encode",
    "status_badges",
]
