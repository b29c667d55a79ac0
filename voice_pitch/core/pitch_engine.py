"""Backend-agnostic per-file estimation: frames in, gated and smoothed track out."""

from __future__ import annotations

import logging
from typing import Callable, List

import numpy as np

from .audio_utils import frame_audio, frame_count, frame_start, to_mono
from .smooth_pitch import median_filter_pitches
from .types import AnalysisRequest, PitchTrack, ProgressEvent
from .utils import ACCEPT_CONFIDENCE, BATCH_HOPS, PROGRESS_STEPS, in_vocal_range
from .yin_engine import estimate_pitch

LOGGER = logging.getLogger(__name__)


def accept_estimate(frequency: float, confidence: float) -> bool:
    """The acceptance gate: vocal range and clearly periodic."""

    return bool(in_vocal_range(frequency)) and confidence > ACCEPT_CONFIDENCE


class TrackEstimator:
    """Runs YIN over every frame of one request, in caller-sized batches.

    The same object drives both backends, so batch size never changes the
    resulting track or the progress sequence.
    """

    def __init__(self, request: AnalysisRequest) -> None:
        self.file_slot = int(request.file_slot)
        self.sample_rate = int(request.sample_rate)
        mono = to_mono(request.channels, self.sample_rate)
        self._frames = frame_audio(mono)
        self.total = frame_count(mono.size)
        self._interval = max(1, self.total // PROGRESS_STEPS)
        self._next = 0
        self._times: List[float] = []
        self._pitches: List[float] = []
        self._confidences: List[float] = []

    @property
    def done(self) -> bool:
        return self._next >= self.total

    @property
    def position(self) -> int:
        return self._next

    def begin(self) -> List[ProgressEvent]:
        return [ProgressEvent(self.file_slot, 0.0)]

    def advance(self, max_hops: int) -> List[ProgressEvent]:
        """Estimate up to ``max_hops`` further frames and return due progress events."""

        events: List[ProgressEvent] = []
        end = min(self._next + max(1, max_hops), self.total)
        for index in range(self._next, end):
            estimate = estimate_pitch(self._frames[index], self.sample_rate)
            if estimate is not None and accept_estimate(estimate.frequency, estimate.confidence):
                self._times.append(frame_start(index) / self.sample_rate)
                self._pitches.append(estimate.frequency)
                self._confidences.append(estimate.confidence)
            if index % self._interval == 0 or index == self.total - 1:
                events.append(ProgressEvent(self.file_slot, 100.0 * index / self.total))
        self._next = end
        return events

    def finish(self) -> tuple[PitchTrack, ProgressEvent]:
        if not self.done:
            raise RuntimeError(f"File {self.file_slot} finished at frame {self._next} of {self.total}")
        track = PitchTrack(
            time=np.asarray(self._times, dtype=float),
            frequency=median_filter_pitches(self._pitches),
            confidence=np.asarray(self._confidences, dtype=float),
            file_slot=self.file_slot,
        )
        LOGGER.debug("File %s: %d of %d frames accepted", self.file_slot, len(track), self.total)
        return track, ProgressEvent(self.file_slot, 100.0)


def _forward(emit: Callable[[ProgressEvent], None] | None, events: List[ProgressEvent]) -> None:
    if emit is None:
        return
    for event in events:
        emit(event)


def estimate_track(
    request: AnalysisRequest,
    emit: Callable[[ProgressEvent], None] | None = None,
    batch_hops: int = BATCH_HOPS,
) -> PitchTrack:
    """Estimate a whole file without yielding, forwarding progress to ``emit`` per batch."""

    estimator = TrackEstimator(request)
    _forward(emit, estimator.begin())
    while not estimator.done:
        _forward(emit, estimator.advance(batch_hops))
    track, final = estimator.finish()
    _forward(emit, [final])
    return track


__all__ = ["TrackEstimator", "accept_estimate", "estimate_track"]
