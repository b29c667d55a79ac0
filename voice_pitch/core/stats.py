"""Robust summary statistics of a cleaned pitch track."""

from __future__ import annotations

import numpy as np

from .types import PitchStatistics, PitchTrack
from .utils import nearest_rank, round_half_up


def compute_statistics(cleaned: PitchTrack | None) -> PitchStatistics | None:
    """Median, extremes and interquartile speaking range, or ``None`` for no data.

    Quartiles use the same nearest-rank indexing as the cleaner so both stages
    agree on where Q1 and Q3 sit.
    """

    if cleaned is None or cleaned.is_empty:
        return None
    values = np.sort(cleaned.frequency)
    return PitchStatistics(
        median=round_half_up(nearest_rank(values, 0.5)),
        min=round_half_up(float(values[0])),
        max=round_half_up(float(values[-1])),
        speaking_range_low=round_half_up(nearest_rank(values, 0.25)),
        speaking_range_high=round_half_up(nearest_rank(values, 0.75)),
    )


__all__ = ["compute_statistics"]
