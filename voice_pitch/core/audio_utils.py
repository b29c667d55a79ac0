"""Mono downmixing and analysis windowing."""

from __future__ import annotations

import numpy as np

try:  # Optional dependency guarding to provide clearer errors.
    import librosa
except Exception as exc:  # pragma: no cover - handled during runtime
    raise RuntimeError("librosa is required for audio processing") from exc

from .utils import HOP_SIZE, MAX_DURATION_S, WINDOW_SIZE


def _ensure_float32(audio: np.ndarray) -> np.ndarray:
    """Cast the buffer to float32 without altering its dynamics."""

    if audio.dtype == np.float32:
        return audio
    return audio.astype(np.float32)


def max_samples(sample_rate: int) -> int:
    return int(MAX_DURATION_S * sample_rate)


def to_mono(channels: np.ndarray, sample_rate: int) -> np.ndarray:
    """Average all channels sample-by-sample over at most the first minute."""

    audio = _ensure_float32(np.asarray(channels))
    limit = max_samples(sample_rate)
    if audio.ndim == 1:
        return audio[:limit].copy()

    # Channels arrive as (channels, samples), which is the layout librosa expects.
    return _ensure_float32(librosa.to_mono(audio[:, :limit]))


def frame_count(num_samples: int) -> int:
    """Number of full analysis windows: floor((n - window) / hop), never negative."""

    return max(0, (num_samples - WINDOW_SIZE) // HOP_SIZE)


def frame_start(index: int) -> int:
    return index * HOP_SIZE


def frame_audio(mono: np.ndarray) -> np.ndarray:
    """Return a read-only (frames, WINDOW_SIZE) view of overlapping windows."""

    total = frame_count(mono.size)
    if total == 0:
        return np.zeros((0, WINDOW_SIZE), dtype=np.float32)
    frames = librosa.util.frame(mono, frame_length=WINDOW_SIZE, hop_length=HOP_SIZE, axis=0)
    return frames[:total]


__all__ = ["frame_audio", "frame_count", "frame_start", "max_samples", "to_mono"]
