"""Replay/analysis utilities for captured TEC serial transcripts."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from .frame import FRAME_MARKER, FRAME_SIZE, TecCommand, checksum, command_name, decode, expected_response_op


_HEX_CLEAN = re.compile(r"[^0-9a-fA-F]")


@dataclass(frozen=True)
class ReplayEvent:
    line: int
    direction: str
    payload: bytes


@dataclass
class ReplayReport:
    total_events: int = 0
    host_to_device_events: int = 0
    device_to_host_events: int = 0
    heartbeat_count: int = 0
    request_count: int = 0
    response_count: int = 0
    checksum_errors: int = 0
    op_mismatches: int = 0
    bad_frames: int = 0
    unanswered_requests: int = 0
    raw_bytes_total: int = 0
    command_counts: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class ReplayRunner:
    @staticmethod
    def _decode_hex(value: str) -> bytes:
        cleaned = _HEX_CLEAN.sub("", value)
        if len(cleaned) % 2 == 1:
            cleaned = cleaned[:-1]
        if not cleaned:
            return b""
        return bytes.fromhex(cleaned)

    def _parse_line(self, line_no: int, line: str) -> ReplayEvent | None:
        stripped = line.strip()
        if not stripped:
            return None
        obj = json.loads(stripped)
        direction = obj.get("dir") or obj.get("direction") or "unknown"
        hex_value = obj.get("payload_hex") or obj.get("hex") or ""
        return ReplayEvent(line=line_no, direction=direction, payload=self._decode_hex(str(hex_value)))

    def parse(self, transcript_path: Path) -> list[ReplayEvent]:
        events: list[ReplayEvent] = []
        for idx, line in enumerate(transcript_path.read_text(encoding="utf-8").splitlines(), start=1):
            event = self._parse_line(idx, line)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _valid_request(payload: bytes) -> bool:
        return len(payload) == FRAME_SIZE and payload[0] == FRAME_MARKER

    def run(self, transcript_path: Path, strict: bool = True) -> ReplayReport:
        events = self.parse(transcript_path)
        report = ReplayReport(total_events=len(events))
        pending_op: int | None = None

        for event in events:
            payload = event.payload
            report.raw_bytes_total += len(payload)

            if event.direction == "host_to_device":
                report.host_to_device_events += 1
                if not self._valid_request(payload):
                    report.bad_frames += 1
                    continue
                if pending_op is not None:
                    report.unanswered_requests += 1
                request = decode(payload)
                report.request_count += 1
                name = command_name(request.op_code)
                report.command_counts[name] = report.command_counts.get(name, 0) + 1
                if request.op_code == TecCommand.HEART_BEAT:
                    report.heartbeat_count += 1
                if checksum(payload[:6]) != request.checksum:
                    report.checksum_errors += 1
                pending_op = request.op_code

            elif event.direction == "device_to_host":
                report.device_to_host_events += 1
                # Responses are checked by length only, as in TecClient.send.
                if len(payload) != FRAME_SIZE:
                    report.bad_frames += 1
                    pending_op = None
                    continue
                response = decode(payload)
                report.response_count += 1
                if pending_op is not None and response.op_code != expected_response_op(pending_op):
                    report.op_mismatches += 1
                elif checksum(payload[:6]) != response.checksum:
                    report.checksum_errors += 1
                pending_op = None

        if pending_op is not None:
            report.unanswered_requests += 1

        if strict:
            if report.heartbeat_count < 1:
                report.errors.append("missing_heartbeat")
            if report.checksum_errors:
                report.errors.append("checksum_errors")
            if report.op_mismatches:
                report.errors.append("op_mismatches")
            if report.bad_frames:
                report.errors.append("bad_frames")

        return report
