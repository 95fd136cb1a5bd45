"""Typed telemetry models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class MetricSpec:
    key: str
    label: str
    unit: str
    initial_min: float
    initial_max: float


# Display order, top to bottom.
DEFAULT_METRICS: tuple[MetricSpec, ...] = (
    MetricSpec("tec_temperature", "TEC Temp", "C", 0.0, 20.0),
    MetricSpec("tec_voltage", "TEC Voltage", "V", 11.0, 13.0),
    MetricSpec("tec_current", "TEC Current", "A", 0.0, 10.0),
    MetricSpec("tec_power_level", "TEC Power Level", "%", 0.0, 100.0),
    MetricSpec("humidity", "Humidity", "%", 45.0, 55.0),
    MetricSpec("dew_point_temperature", "Dew Point", "C", 10.0, 20.0),
    MetricSpec("pcb_temperature", "PCB Temp", "C", 20.0, 30.0),
)
