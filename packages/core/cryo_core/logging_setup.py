"""JSON-lines logging for the cooler app, plus crash capture."""

from __future__ import annotations

import faulthandler
import json
import logging
import logging.handlers
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import config_root


_LOGGER_NAME = "cryo_cooler"
LOG_FILE = "cryo_cooler.log"
FAULT_FILE = "fault.log"

# Record attributes copied into each JSON line when present.
_EXTRA_FIELDS = ("event", "port", "state", "error", "status", "request", "firmware", "hardware", "thread")


def log_dir() -> Path:
    path = config_root() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update({name: getattr(record, name) for name in _EXTRA_FIELDS if hasattr(record, name)})
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(keep_files: int = 7, console: bool = True, level: int = logging.INFO) -> logging.Logger:
    """Attach the rotating JSON file handler once; later calls return the same logger."""
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir() / LOG_FILE),
        when="midnight",
        backupCount=max(2, keep_files),
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s %(message)s"))
        logger.addHandler(stream_handler)

    logger.info("logging configured", extra={"event": "logging_configured"})
    return logger


def get_logger(child: str | None = None) -> logging.Logger:
    return logging.getLogger(f"{_LOGGER_NAME}.{child}" if child else _LOGGER_NAME)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log one structured event; only names in ``_EXTRA_FIELDS`` reach the JSON line."""
    extra = {k: v for k, v in fields.items() if k in _EXTRA_FIELDS}
    extra["event"] = event
    detail = " ".join(f"{k}={v}" for k, v in fields.items())
    logger.log(level, f"{event} {detail}".strip(), extra=extra)


def install_crash_hooks() -> None:
    """Route uncaught exceptions into the log and native crashes into ``fault.log``."""
    logger = get_logger()

    def _log_crash(event: str, exc_info, thread_name: str) -> None:
        logger.critical(f"{event} in {thread_name}", exc_info=exc_info, extra={"event": event, "thread": thread_name})

    sys.excepthook = lambda exc_type, exc, tb: _log_crash("uncaught_exception", (exc_type, exc, tb), "main")
    threading.excepthook = lambda args: _log_crash(
        "thread_exception",
        (args.exc_type, args.exc_value, args.exc_traceback),
        args.thread.name if args.thread else "unknown",
    )

    faulthandler.enable(file=(log_dir() / FAULT_FILE).open("a", encoding="utf-8"), all_threads=True)
    logger.info("crash hooks installed", extra={"event": "crash_hooks_installed"})
