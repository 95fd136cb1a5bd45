import json
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "tec_protocol"))

from cryo_tec.frame import TecCommand, checksum, encode, expected_response_op
from cryo_tec.replay import ReplayRunner


def exchange(op, payload=b"\x00\x00\x00\x00"):
    return [
        {"dir": "host_to_device", "payload_hex": encode(op).hex()},
        {"dir": "device_to_host", "payload_hex": encode(expected_response_op(op), payload).hex()},
    ]


def write_transcript(folder, rows):
    path = Path(folder) / "session.jsonl"
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n", encoding="utf-8")
    return path


class ReplayTests(unittest.TestCase):
    def test_replay_report_counts_clean_session(self):
        rows = exchange(TecCommand.HEART_BEAT, b"\x03\x00\x00\x00")
        rows += exchange(TecCommand.GET_FW_VERSION, b"\x01\x02\x00\x00")
        rows += exchange(TecCommand.GET_TEC_TEMPERATURE)
        with tempfile.TemporaryDirectory() as tmp:
            report = ReplayRunner().run(write_transcript(tmp, rows), strict=True)

        self.assertEqual(report.heartbeat_count, 1)
        self.assertEqual(report.request_count, 3)
        self.assertEqual(report.response_count, 3)
        self.assertEqual(report.command_counts["GET_FW_VERSION"], 1)
        self.assertEqual(report.unanswered_requests, 0)
        self.assertEqual(report.errors, [])

    def test_replay_flags_protocol_errors(self):
        bad_crc = bytearray(encode(expected_response_op(TecCommand.GET_HUMIDITY)))
        bad_crc[7] ^= 0x10
        rows = [
            {"dir": "host_to_device", "payload_hex": encode(TecCommand.GET_HUMIDITY).hex()},
            {"dir": "device_to_host", "payload_hex": bytes(bad_crc).hex()},
            {"dir": "host_to_device", "payload_hex": encode(TecCommand.GET_DEW_POINT).hex()},
            {"dir": "device_to_host", "payload_hex": encode(expected_response_op(TecCommand.GET_HUMIDITY)).hex()},
            {"dir": "host_to_device", "payload_hex": "aa 00 00"},
            {"dir": "host_to_device", "payload_hex": encode(TecCommand.GET_BOARD_TEMP).hex()},
        ]
        with tempfile.TemporaryDirectory() as tmp:
            path = write_transcript(tmp, rows)
            strict = ReplayRunner().run(path, strict=True)
            lenient = ReplayRunner().run(path, strict=False)

        self.assertEqual(strict.checksum_errors, 1)
        self.assertEqual(strict.op_mismatches, 1)
        self.assertEqual(strict.bad_frames, 1)
        self.assertEqual(strict.unanswered_requests, 1)
        self.assertEqual(strict.errors, ["missing_heartbeat", "checksum_errors", "op_mismatches", "bad_frames"])
        self.assertEqual(lenient.errors, [])

    def test_response_marker_is_not_checked(self):
        head = bytes([0x55, expected_response_op(TecCommand.HEART_BEAT), 1, 0, 0, 0])
        response = head + checksum(head).to_bytes(2, "little")
        rows = [
            {"dir": "host_to_device", "payload_hex": encode(TecCommand.HEART_BEAT).hex()},
            {"dir": "device_to_host", "payload_hex": response.hex()},
            {"dir": "device_to_host", "payload_hex": "aa7f0000"},
        ]
        with tempfile.TemporaryDirectory() as tmp:
            report = ReplayRunner().run(write_transcript(tmp, rows), strict=True)

        self.assertEqual(report.response_count, 1)
        self.assertEqual(report.checksum_errors, 0)
        self.assertEqual(report.bad_frames, 1)
        self.assertEqual(report.errors, ["bad_frames"])


if __name__ == "__main__":
    unittest.main()
