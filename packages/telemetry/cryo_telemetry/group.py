"""One telemetry window per monitored metric."""

from __future__ import annotations

from typing import Any, Iterable, Iterator

from .models import DEFAULT_METRICS, MetricSpec
from .window import DEFAULT_HORIZON_S, TelemetryWindow


class TelemetryGroup:
    def __init__(self, metrics: Iterable[MetricSpec] = DEFAULT_METRICS, horizon_s: float = DEFAULT_HORIZON_S) -> None:
        self.metrics: tuple[MetricSpec, ...] = tuple(metrics)
        self._windows: dict[str, TelemetryWindow] = {
            spec.key: TelemetryWindow(spec.label, spec.unit, spec.initial_min, spec.initial_max, horizon_s=horizon_s)
            for spec in self.metrics
        }

    def update(self, data: Any) -> None:
        """Append every metric of a monitoring snapshot at its capture time."""
        for spec in self.metrics:
            self._windows[spec.key].append(data.timestamp, float(getattr(data, spec.key)))

    def window(self, key: str) -> TelemetryWindow:
        return self._windows[key]

    def __getitem__(self, key: str) -> TelemetryWindow:
        return self._windows[key]

    def __iter__(self) -> Iterator[TelemetryWindow]:
        return (self._windows[spec.key] for spec in self.metrics)

    def __len__(self) -> int:
        return len(self._windows)

    @property
    def dirty(self) -> bool:
        return any(not w.cache_valid for w in self._windows.values())

    def mark_rendered(self) -> None:
        for w in self._windows.values():
            w.mark_rendered()
