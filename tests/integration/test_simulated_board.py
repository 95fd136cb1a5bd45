import json
import struct
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "tec_protocol"))
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from cryo_core import AppSettings, PollController, PollState
from cryo_tec import DeviceStatus, ReplayRunner, TecClient
from cryo_tec.frame import TecCommand, decode, encode, expected_response_op


class SimulatedBoard:
    """Answers requests like the controller board and records the byte stream."""

    def __init__(self):
        self.status = DeviceStatus.POWER_OK | DeviceStatus.TEMP_SENSE_OK | DeviceStatus.HUM_SENSE_OK
        self.status |= DeviceStatus.LOW_POWER_MODE_ACTIVE
        self.power_level = 0
        self.pending = b""
        self.transcript = []
        self.drop_next = False
        self.reopens = 0

    def open(self, port, baud=115200, timeout_ms=500):
        self.port = port

    def reopen(self):
        self.reopens += 1

    def close(self):
        pass

    def _answer(self, op, payload):
        if op == TecCommand.HEART_BEAT:
            return int(self.status).to_bytes(4, "little")
        if op == TecCommand.RESET_BOARD:
            self.status |= DeviceStatus.BOARD_INIT
        elif op == TecCommand.SET_TEC_POWER_LEVEL:
            self.power_level = payload[0]
        elif op == TecCommand.SET_DISABLE_NOT_ENABLE:
            if payload[0]:
                self.status |= DeviceStatus.LOW_POWER_MODE_ACTIVE
            else:
                self.status &= ~DeviceStatus.LOW_POWER_MODE_ACTIVE
        elif op == TecCommand.GET_TEC_TEMPERATURE:
            return struct.pack("<f", 3.5)
        elif op in (TecCommand.GET_BOARD_TEMP, TecCommand.GET_HUMIDITY, TecCommand.GET_DEW_POINT):
            return struct.pack("<f", 40.0)
        elif op == TecCommand.GET_TEC_VOLTAGE:
            return (253).to_bytes(4, "little")
        elif op == TecCommand.GET_TEC_CURRENT:
            return (14).to_bytes(4, "little")
        elif op == TecCommand.GET_TEC_POWER_LEVEL:
            return bytes([self.power_level, 0, 0, 0])
        elif op == TecCommand.GET_FW_VERSION:
            return bytes([2, 1, 0, 0])
        return bytes(4)

    def write(self, payload):
        self.transcript.append({"dir": "host_to_device", "payload_hex": payload.hex()})
        request = decode(payload)
        if self.drop_next:
            self.drop_next = False
            self.pending = b""
            return len(payload)
        response = encode(expected_response_op(request.op_code), self._answer(request.op_code, request.payload))
        self.transcript.append({"dir": "device_to_host", "payload_hex": response.hex()})
        self.pending = response
        return len(payload)

    def read(self, max_len):
        data, self.pending = self.pending[:max_len], self.pending[max_len:]
        return data


class SimulatedBoardTests(unittest.TestCase):
    def test_full_session_round_trip(self):
        board = SimulatedBoard()
        with tempfile.TemporaryDirectory() as tmp:
            cfg = AppSettings()
            cfg.data.enable_on_startup = True
            cfg.data.tec_inputs.max_power = 70
            controller = PollController(
                settings=cfg,
                settings_file=Path(tmp) / "cryo_settings.json",
                client_factory=lambda port: TecClient.open(port, transport=board),
            )
            status = controller.connect("COM5")

            self.assertIn(DeviceStatus.BOARD_INIT, board.status)
            self.assertNotIn(DeviceStatus.LOW_POWER_MODE_ACTIVE, board.status)
            self.assertEqual(str(status.firmware), "2.1")

            self.assertTrue(controller.tick(force=True))
            data = controller.status.last_data
            self.assertEqual(data.tec_temperature, 3.5)
            self.assertAlmostEqual(data.tec_voltage, 253 / 21.1)
            self.assertEqual(data.tec_power_level, 70)

            board.drop_next = True
            self.assertTrue(controller.tick(force=True))
            self.assertEqual(board.reopens, 1)
            self.assertEqual(controller.status.state, PollState.RECOVERING)

            self.assertTrue(controller.disable())
            self.assertIn(DeviceStatus.LOW_POWER_MODE_ACTIVE, board.status)

            path = Path(tmp) / "session.jsonl"
            path.write_text("\n".join(json.dumps(row) for row in board.transcript), encoding="utf-8")
            report = ReplayRunner().run(path, strict=True)

        self.assertEqual(report.errors, [])
        self.assertEqual(report.unanswered_requests, 1)
        self.assertGreaterEqual(report.heartbeat_count, 3)
        self.assertEqual(report.command_counts["RESET_BOARD"], 1)


if __name__ == "__main__":
    unittest.main()
