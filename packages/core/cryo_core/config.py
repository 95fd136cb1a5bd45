"""Persistent app settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


SETTINGS_VERSION = 1
SETTINGS_FILE = "cryo_settings.json"
SETTINGS_TEMP_FILE = "cryo_settings_old.json"
SETTINGS_DIR = "cryo_cooler_controller"


class SettingsError(Exception):
    """Settings could not be written to disk."""


@dataclass
class TecInputs:
    p_coef: float = 100.0
    i_coef: float = 1.0
    d_coef: float = 1.0
    set_point: float = 2.0
    max_power: int = 100


@dataclass
class Settings:
    last_port: str | None = None
    open_port_on_startup: bool = False
    tec_inputs: TecInputs = field(default_factory=TecInputs)
    enable_on_startup: bool = False


@dataclass
class AppSettings:
    version: int = SETTINGS_VERSION
    data: Settings = field(default_factory=Settings)


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "CryoCoolerController"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "CryoCoolerController"
    return Path.home() / ".config" / SETTINGS_DIR


def settings_path() -> Path:
    """A settings file next to the working directory wins over the per-user one."""
    local = Path.cwd() / SETTINGS_FILE
    if local.exists():
        return local
    return config_root() / SETTINGS_FILE


def _merge(dataclass_type, raw: dict[str, Any]):
    if not isinstance(raw, dict):
        raise ValueError(f"{dataclass_type.__name__} must be an object")
    defaults = dataclass_type()  # type: ignore[misc]
    names = {f.name for f in fields(dataclass_type)}
    for k, v in raw.items():
        if k in names:
            setattr(defaults, k, v)
    return defaults


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_inputs(inputs: TecInputs) -> None:
    inputs.p_coef = _clamp(float(inputs.p_coef), -1000.0, 1000.0)
    inputs.i_coef = _clamp(float(inputs.i_coef), -1000.0, 1000.0)
    inputs.d_coef = _clamp(float(inputs.d_coef), -1000.0, 1000.0)
    inputs.set_point = _clamp(float(inputs.set_point), -50.0, 50.0)
    inputs.max_power = int(_clamp(int(inputs.max_power), 0, 100))


def _normalize(cfg: AppSettings) -> None:
    normalize_inputs(cfg.data.tec_inputs)
    cfg.data.open_port_on_startup = bool(cfg.data.open_port_on_startup)
    cfg.data.enable_on_startup = bool(cfg.data.enable_on_startup)
    if cfg.data.last_port is not None:
        cfg.data.last_port = str(cfg.data.last_port) or None


def _backup_invalid(path: Path) -> Path:
    stamp = datetime.now(timezone.utc).strftime("%Y_%m_%d_%H_%M_%S")
    backup = path.with_name(f"cryo_settings_backup_{stamp}.json")
    path.replace(backup)
    return backup


def _parse(raw: Any) -> AppSettings:
    if not isinstance(raw, dict):
        raise ValueError("settings root must be an object")
    version = raw.get("version")
    if version != SETTINGS_VERSION:
        raise ValueError(f"unsupported settings version {version!r}")
    data = raw.get("data")
    if not isinstance(data, dict):
        raise ValueError("settings data must be an object")
    settings = _merge(Settings, {k: v for k, v in data.items() if k != "tec_inputs"})
    settings.tec_inputs = _merge(TecInputs, data.get("tec_inputs", {}))
    return AppSettings(version=SETTINGS_VERSION, data=settings)


def load_settings(path: Path | None = None) -> AppSettings:
    path = path or settings_path()
    if not path.exists():
        return AppSettings()

    try:
        cfg = _parse(json.loads(path.read_text(encoding="utf-8")))
        _normalize(cfg)
    except (ValueError, TypeError):
        # Unreadable or outdated files are kept aside, never silently overwritten.
        _backup_invalid(path)
        return AppSettings()
    return cfg


def save_settings(cfg: AppSettings, path: Path | None = None) -> Path:
    cfg.version = SETTINGS_VERSION
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    temp = path.with_name(SETTINGS_TEMP_FILE)

    if path.exists():
        path.replace(temp)
    try:
        path.write_text(json.dumps(asdict(cfg), indent=2), encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        if temp.exists():
            temp.replace(path)
        raise SettingsError(f"Failed to save settings ({exc})") from exc

    if temp.exists():
        temp.unlink()
    return path


def update_settings(cfg: AppSettings, path: Path | None = None, **changes: Any) -> bool:
    """Apply settings/TEC input changes by name; write only when something changed."""
    input_names = {f.name for f in fields(TecInputs)}
    setting_names = {f.name for f in fields(Settings)} - {"tec_inputs"}
    changed = False

    for name, value in changes.items():
        if name in input_names:
            target: Any = cfg.data.tec_inputs
        elif name in setting_names:
            target = cfg.data
        else:
            raise KeyError(f"unknown setting {name!r}")
        if getattr(target, name) != value:
            setattr(target, name, value)
            changed = True

    if changed:
        _normalize(cfg)
        save_settings(cfg, path)
    return changed
