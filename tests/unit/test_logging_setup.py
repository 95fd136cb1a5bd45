import json
import logging
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "tec_protocol"))
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from cryo_core import logging_setup
from cryo_core.logging_setup import JsonFormatter, get_logger, log_event


class CaptureHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.lines = []
        self.setFormatter(JsonFormatter())

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


class LoggingSetupTests(unittest.TestCase):
    def test_log_event_keeps_known_fields_only(self):
        logger = get_logger("test_events")
        handler = CaptureHandler()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            log_event(logger, logging.WARNING, "monitor_error", port="COM3", error="Short read", samples=4)
        finally:
            logger.removeHandler(handler)

        line = handler.lines[0]
        self.assertEqual(line["event"], "monitor_error")
        self.assertEqual(line["logger"], "cryo_cooler.test_events")
        self.assertEqual(line["level"], "WARNING")
        self.assertEqual(line["port"], "COM3")
        self.assertNotIn("samples", line)
        self.assertIn("samples=4", line["msg"])

    def test_log_dir_lives_under_config_root(self):
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.object(logging_setup, "config_root", return_value=Path(tmp) / "cfg"):
                path = logging_setup.log_dir()
            self.assertTrue(path.is_dir())
            self.assertEqual(path, Path(tmp) / "cfg" / "logs")


if __name__ == "__main__":
    unittest.main()
