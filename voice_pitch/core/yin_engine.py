"""YIN fundamental-frequency estimator restricted to the speaking range."""

from __future__ import annotations

import math

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .types import PitchEstimate
from .utils import FMAX, FMIN, YIN_THRESHOLD


def period_bounds(sample_rate: int) -> tuple[int, int]:
    """Return (min_period, max_period) in samples for the FMIN..FMAX band."""

    max_period = int(math.floor(sample_rate / FMIN))
    min_period = int(math.ceil(sample_rate / FMAX))
    return min_period, max_period


def difference_function(frame: np.ndarray, max_period: int) -> np.ndarray:
    """Squared-difference d(tau) for tau in [0, max_period).

    Only the first ``min(len(frame) - max_period, max_period)`` samples are
    compared. When that subset is empty every lag gets a zero difference.
    """

    samples = np.asarray(frame, dtype=np.float64)
    if max_period <= 0:
        return np.zeros(0, dtype=np.float64)
    window = min(samples.size - max_period, max_period)
    if window <= 0:
        return np.zeros(max_period, dtype=np.float64)
    head = samples[:window]
    shifted = sliding_window_view(samples[: window + max_period - 1], window)
    delta = head[np.newaxis, :] - shifted
    return np.einsum("ij,ij->i", delta, delta)


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """CMND d'(tau) with d'(0) fixed to 1, stored as float32.

    The difference values are rounded to float32 before the running sum, which
    itself accumulates in float64. Lags where the running sum is still zero
    come out as NaN, which never passes a threshold comparison.
    """

    stored = np.asarray(diff, dtype=np.float32).copy()
    if stored.size == 0:
        return stored
    stored[0] = 1.0
    if stored.size == 1:
        return stored
    lags = np.arange(1, stored.size, dtype=np.float64)
    values = stored[1:].astype(np.float64)
    running = np.cumsum(values)
    with np.errstate(divide="ignore", invalid="ignore"):
        stored[1:] = values * lags / running
    return stored


def estimate_pitch(
    frame: np.ndarray,
    sample_rate: int,
    threshold: float = YIN_THRESHOLD,
) -> PitchEstimate | None:
    """Estimate the fundamental of one window, or ``None`` when no period is found."""

    min_period, max_period = period_bounds(sample_rate)
    cmnd = cumulative_mean_normalized_difference(difference_function(frame, max_period))

    if min_period >= max_period:
        return None

    # Compare in float64 so the 0.15 threshold is not itself rounded to float32.
    scanned = cmnd[min_period:max_period].astype(np.float64)
    below = np.flatnonzero(scanned < threshold)
    if below.size:
        tau = min_period + int(below[0])
        while tau + 1 < max_period and cmnd[tau + 1] < cmnd[tau]:
            tau += 1
        return PitchEstimate(frequency=sample_rate / tau, confidence=1.0 - float(cmnd[tau]))

    # No dip under the threshold: take the deepest lag, if any beat d' = 1.
    finite = np.isfinite(scanned)
    if not finite.any():
        return None
    candidates = np.where(finite, scanned, np.inf)
    offset = int(np.argmin(candidates))
    best = float(candidates[offset])
    if best >= 1.0:
        return None
    tau = min_period + offset
    return PitchEstimate(frequency=sample_rate / tau, confidence=1.0 - best)


__all__ = [
    "cumulative_mean_normalized_difference",
    "difference_function",
    "estimate_pitch",
    "period_bounds",
]
