"""Rolling, auto-scaling sample window for one telemetry metric."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Iterator

from .models import Sample


DEFAULT_HORIZON_S = 300.0
HEADROOM = 0.05


class TelemetryWindow:
    """Newest-first samples no older than ``horizon_s`` behind the newest one.

    Display bounds start at the configured range and only ever widen when a
    sample falls outside them. Every mutation clears ``cache_valid`` so a
    renderer can skip redrawing untouched windows.
    """

    def __init__(
        self,
        label: str,
        unit: str,
        minimum: float,
        maximum: float,
        horizon_s: float = DEFAULT_HORIZON_S,
    ) -> None:
        self.label = label
        self.unit = unit
        self._min = float(minimum)
        self._max = float(maximum)
        self._horizon = timedelta(seconds=horizon_s)
        self._samples: deque[Sample] = deque()
        self._cache_valid = False

    @property
    def bounds(self) -> tuple[float, float]:
        return self._min, self._max

    @property
    def horizon(self) -> timedelta:
        return self._horizon

    @property
    def cache_valid(self) -> bool:
        return self._cache_valid

    def mark_rendered(self) -> None:
        self._cache_valid = True

    def append(self, timestamp: datetime, value: float) -> None:
        value = float(value)
        if value > self._max:
            self._max = value + (value - self._min) * HEADROOM
        if value < self._min:
            self._min = value - (self._min - value) * HEADROOM

        self._samples.appendleft(Sample(timestamp=timestamp, value=value))

        # Age is measured against the newest sample, never wall clock.
        while self._samples and (timestamp - self._samples[-1].timestamp) > self._horizon:
            self._samples.pop()

        self._cache_valid = False

    def reset_bounds(self, minimum: float, maximum: float) -> None:
        if minimum > maximum:
            raise ValueError("minimum must not exceed maximum")
        self._min = float(minimum)
        self._max = float(maximum)
        self._cache_valid = False

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

    def __getitem__(self, index: int) -> Sample:
        return self._samples[index]

    @property
    def newest(self) -> Sample | None:
        return self._samples[0] if self._samples else None

    @property
    def oldest(self) -> Sample | None:
        return self._samples[-1] if self._samples else None

    def oldest_first(self) -> list[Sample]:
        return list(reversed(self._samples))

    def caption(self, hover_index: int | None = None) -> str:
        if hover_index is None or not 0 <= hover_index < len(self._samples):
            return self.label
        return f"{self.label}  -  {self._samples[hover_index].value:.2f} {self.unit}"
