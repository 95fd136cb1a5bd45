"""Doctor report and offline support bundle for cooler connection problems."""

from __future__ import annotations

import json
import platform
import tempfile
import zipfile
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cryo_tec import TecTransport, status_badges
from cryo_tec.models import status_flags

from .config import AppSettings, settings_path
from .logging_setup import log_dir
from .poll_controller import PollStatus


PORT_HINT = "If you are unsure which port belongs to the cooler, replug it and see which port temporarily disappears"


def build_doctor_payload(cfg: AppSettings) -> dict[str, Any]:
    devices = TecTransport.discover()
    last_port = cfg.data.last_port
    return {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "settings": asdict(cfg),
        "settings_path": str(settings_path()),
        "last_port_present": any(d.device == last_port for d in devices) if last_port else None,
        "ports": [dict(asdict(d), last_used=d.device == last_port) for d in devices],
        "hint": PORT_HINT,
    }


def describe_status(status: PollStatus) -> dict[str, Any]:
    """Flatten a poll status into plain JSON values."""
    return {
        "connected": status.connected,
        "port": status.port,
        "state": status.state.value,
        "firmware": str(status.firmware) if status.firmware else None,
        "hardware": status.hardware,
        "status_raw": int(status.device_status),
        "flags": status_flags(status.device_status),
        "badges": status_badges(status.device_status) if status.connected else [],
        "last_data": asdict(status.last_data) if status.last_data else None,
        "last_error": status.last_error,
        "sample_count": status.sample_count,
        "recoveries": status.recoveries,
    }


class DiagnosticsExporter:
    def __init__(self, app_name: str = "CryoCoolerController") -> None:
        self.app_name = app_name

    def bundle(
        self,
        cfg: AppSettings,
        doctor_payload: dict[str, Any],
        recent_poll_events: list[dict[str, Any]] | None = None,
        output_dir: Path | None = None,
        poll_status: PollStatus | None = None,
    ) -> Path:
        output_base = output_dir or Path(tempfile.gettempdir())
        output_base.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        zip_path = output_base / f"cryo-cooler-diagnostics-{stamp}.zip"

        files: dict[str, Any] = {
            "manifest.json": {
                "app": self.app_name,
                "created_utc": datetime.now(timezone.utc).isoformat(),
                "settings_path": str(settings_path()),
                "log_dir": str(log_dir()),
            },
            "doctor.json": doctor_payload,
            "settings.json": asdict(cfg),
            "poll_events.json": recent_poll_events or [],
        }
        if poll_status is not None:
            files["device.json"] = describe_status(poll_status)

        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, content in files.items():
                zf.writestr(name, json.dumps(content, indent=2, sort_keys=True, default=str))
            # fault.log matches the glob too.
            for item in sorted(log_dir().glob("*.log*")):
                zf.write(item, arcname=f"logs/{item.name}")

        return zip_path
