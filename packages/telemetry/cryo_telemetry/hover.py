"""Map a horizontal pointer position onto a newest-first sample index."""

from __future__ import annotations

import math


def _round_half_away(value: float) -> int:
    if value >= 0:
        return math.floor(value + 0.5)
    return -math.floor(-value + 0.5)


def resolve_hover_index(
    cursor_x: float | None,
    data_len: int,
    viewport_width: float,
    viewport_x: float,
) -> int | None:
    """Leftmost pixel maps to the oldest sample, rightmost to the newest."""
    if data_len <= 0 or cursor_x is None:
        return None
    if viewport_width <= 0:
        return None

    scale = data_len / viewport_width
    raw_index = max(_round_half_away((cursor_x - viewport_x) * scale), 0)
    index = max(data_len - raw_index, 0)
    return min(index, data_len - 1)
