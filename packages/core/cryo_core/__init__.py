"""Core app services for settings, polling, logging and diagnostics."""

from .config import (
    AppSettings,
    Settings,
    SettingsError,
    TecInputs,
    load_settings,
    normalize_inputs,
    save_settings,
    update_settings,
)
from .diagnostics import DiagnosticsExporter, build_doctor_payload
from .poll_controller import PollController, PollState, PollStatus

__all__ = [
    "AppSettings",
    "DiagnosticsExporter",
    "PollController",
    "PollState",
    "PollStatus",
    "Settings",
    "SettingsError",
    "TecInputs",
    "build_doctor_payload",
    "load_settings",
    "normalize_inputs",
    "save_settings",
    "update_settings",
]
