"""Shared constants and helpers for the pitch analysis engine."""

from __future__ import annotations

from typing import Iterator

import numpy as np

WINDOW_SIZE = 2048
HOP_SIZE = 512  # 75% overlap
MAX_DURATION_S = 60
FMIN = 75.0
FMAX = 350.0
YIN_THRESHOLD = 0.15
ACCEPT_CONFIDENCE = 0.6
MEDIAN_WIDTH = 5
IQR_FACTOR = 1.5
CONTINUITY_GAP_S = 0.1
MIN_SEGMENT_LENGTH = 3
BATCH_HOPS = 200
PROGRESS_STEPS = 100


def in_vocal_range(frequency: np.ndarray | float) -> np.ndarray | bool:
    """True where ``FMIN <= frequency <= FMAX``."""

    return (frequency >= FMIN) & (frequency <= FMAX)


def nearest_rank(sorted_values: np.ndarray, fraction: float) -> float:
    """Pick ``sorted_values[floor(n * fraction)]`` without interpolation."""

    if sorted_values.size == 0:
        raise ValueError("nearest_rank needs at least one value")
    index = int(np.floor(sorted_values.size * fraction))
    return float(sorted_values[min(index, sorted_values.size - 1)])


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, as display code expects."""

    return int(np.floor(value + 0.5))


def iter_time_segments(time_axis: np.ndarray, max_gap: float) -> Iterator[tuple[int, int]]:
    """Yield (start, end) index pairs of runs whose consecutive times differ by < max_gap."""

    if time_axis.ndim != 1:
        raise ValueError("Time axis must be 1-D for iter_time_segments")
    if time_axis.size == 0:
        return
    start = 0
    for idx in range(1, time_axis.size):
        if not time_axis[idx] - time_axis[idx - 1] < max_gap:
            yield start, idx
            start = idx
    yield start, time_axis.size


__all__ = [
    "ACCEPT_CONFIDENCE",
    "BATCH_HOPS",
    "CONTINUITY_GAP_S",
    "FMAX",
    "FMIN",
    "HOP_SIZE",
    "IQR_FACTOR",
    "MAX_DURATION_S",
    "MEDIAN_WIDTH",
    "MIN_SEGMENT_LENGTH",
    "PROGRESS_STEPS",
    "WINDOW_SIZE",
    "YIN_THRESHOLD",
    "in_vocal_range",
    "iter_time_segments",
    "nearest_rank",
    "round_half_up",
]
