"""Error kinds raised by the TEC protocol client."""

from __future__ import annotations


class TecError(Exception):
    """Base class for every failure of a protocol exchange."""


class TecIOError(TecError):
    """Transport open/read/write failed or transferred too few bytes."""


class ChecksumError(TecError):
    """Response CRC does not match its first six bytes."""


class ProtocolMismatch(TecError):
    """Response op code does not answer the request that was sent."""

    def __init__(self, request_op: int, response_op: int) -> None:
        super().__init__(
            f"Response contained incorrect op code 0x{response_op:02X} "
            f"(expected 0x{(request_op + 127) & 0xFF:02X} for request 0x{request_op:02X})"
        )
        self.request_op = request_op
        self.response_op = response_op


class InvalidStatus(TecError):
    """Status bits cannot be represented by the known flag set."""
