"""Time-windowed telemetry buffers for live cooler charts."""

from .group import TelemetryGroup
from .hover import resolve_hover_index
from .models import DEFAULT_METRICS, MetricSpec, Sample
from .window import DEFAULT_HORIZON_S, TelemetryWindow

__all__ = [
    "DEFAULT_HORIZON_S",
    "DEFAULT_METRICS",
    "MetricSpec",
    "Sample",
    "TelemetryGroup",
    "TelemetryWindow",
    "resolve_hover_index",
]
