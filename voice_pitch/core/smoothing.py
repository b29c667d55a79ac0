from __future__ import annotations

import logging

import numpy as np

from .types import PitchTrack
from .utils import (
    CONTINUITY_GAP_S,
    IQR_FACTOR,
    MIN_SEGMENT_LENGTH,
    in_vocal_range,
    iter_time_segments,
    nearest_rank,
)

LOGGER = logging.getLogger(__name__)


def _range_filter(track: PitchTrack) -> PitchTrack:
    return track.select(in_vocal_range(track.frequency))


def iqr_bounds(frequency: np.ndarray) -> tuple[float, float]:
    """Tukey fences around nearest-rank quartiles."""

    values = np.sort(frequency)
    q1 = nearest_rank(values, 0.25)
    q3 = nearest_rank(values, 0.75)
    iqr = q3 - q1
    return q1 - IQR_FACTOR * iqr, q3 + IQR_FACTOR * iqr


def _remove_outliers(track: PitchTrack) -> PitchTrack:
    low, high = iqr_bounds(track.frequency)
    return track.select((track.frequency >= low) & (track.frequency <= high))


def _keep_continuous(track: PitchTrack) -> PitchTrack:
    runs = [
        np.arange(start, end)
        for start, end in iter_time_segments(track.time, CONTINUITY_GAP_S)
        if end - start >= MIN_SEGMENT_LENGTH
    ]
    if not runs:
        # Isolated points only: keep them rather than discard everything.
        return track
    return track.select(np.concatenate(runs))


def clean_track(track: PitchTrack | None) -> PitchTrack | None:
    """Range-gate, de-outlier and segment a raw track.

    Returns ``None`` when no observation survives, which callers must render as
    "no valid pitch" rather than as zero-valued statistics.
    """

    if track is None or track.is_empty:
        return None

    ranged = _range_filter(track)
    if ranged.is_empty:
        LOGGER.debug("File %s: nothing inside the vocal range", track.file_slot)
        return None

    kept = _remove_outliers(ranged)
    if kept.is_empty:
        LOGGER.debug("File %s: every observation is an IQR outlier", track.file_slot)
        return None

    return _keep_continuous(kept)


__all__ = ["clean_track", "iqr_bounds"]
