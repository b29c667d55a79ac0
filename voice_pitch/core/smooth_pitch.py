"""Pitch post-processing applied once per file after raw collection."""

from __future__ import annotations

from typing import Iterable

import numpy as np
from scipy.signal import medfilt

from .utils import MEDIAN_WIDTH


def _to_float_array(values: Iterable[float]) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.ndim != 1:
        raise ValueError("Pitch arrays must be one-dimensional.")
    return array.copy()


def median_filter_pitches(pitches: Iterable[float], width: int = MEDIAN_WIDTH) -> np.ndarray:
    """Centered running median that leaves the ``width // 2`` edge values untouched.

    Every interior value is replaced by the median of its ``width`` neighbours,
    so the result has the same length and each value is one of its window's.
    """

    freq = _to_float_array(pitches)
    if width % 2 == 0:
        raise ValueError("Median width must be odd.")
    half = width // 2
    if freq.size < width:
        return freq

    # medfilt zero-pads the edges; only the padded positions are restored.
    smoothed = medfilt(freq, kernel_size=width)
    smoothed[:half] = freq[:half]
    smoothed[-half:] = freq[-half:]
    return smoothed


__all__ = ["median_filter_pitches"]
