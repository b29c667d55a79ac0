from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

FileSlot = Literal[1, 2]


class BackendFault(RuntimeError):
    """Raised when the parallel backend cannot start or a worker dies mid-run."""


class PerFileAnalysisError(RuntimeError):
    """Raised when a single file's estimation cannot complete."""

    def __init__(self, file_slot: int, reason: str):
        super().__init__(f"File {file_slot} analysis failed: {reason}")
        self.file_slot = file_slot
        self.reason = reason


class NoPitchError(RuntimeError):
    """Raised when a caller insists on statistics but no valid pitch survived."""


class AnalysisRequest(BaseModel):
    """Decoded samples for one file slot, borrowed read-only by the engine."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    file_slot: FileSlot
    channels: np.ndarray
    sample_rate: int = Field(gt=0)

    @field_validator("channels", mode="before")
    @classmethod
    def _coerce_channels(cls, value: Any) -> np.ndarray:
        data = np.asarray(value, dtype=np.float32)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2 or data.shape[0] == 0:
            raise ValueError("channels must be a non-empty (channels, samples) array")
        view = data.view()
        view.flags.writeable = False
        return view

    @property
    def num_samples(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        return self.num_samples / self.sample_rate


@dataclass(frozen=True)
class PitchEstimate:
    frequency: float
    confidence: float


@dataclass(frozen=True)
class PitchObservation:
    time: float
    frequency: float
    confidence: float


@dataclass
class PitchTrack:
    time: np.ndarray
    frequency: np.ndarray
    confidence: np.ndarray
    file_slot: int = 0

    @classmethod
    def empty(cls, file_slot: int = 0) -> "PitchTrack":
        return cls(
            time=np.array([], dtype=float),
            frequency=np.array([], dtype=float),
            confidence=np.array([], dtype=float),
            file_slot=file_slot,
        )

    def __len__(self) -> int:
        return int(self.frequency.size)

    def __iter__(self) -> Iterator[PitchObservation]:
        for t, f, c in zip(self.time, self.frequency, self.confidence):
            yield PitchObservation(time=float(t), frequency=float(f), confidence=float(c))

    @property
    def is_empty(self) -> bool:
        return self.frequency.size == 0

    def select(self, mask_or_index: np.ndarray) -> "PitchTrack":
        """Return the observations picked by a boolean mask or index array."""

        return PitchTrack(
            time=self.time[mask_or_index],
            frequency=self.frequency[mask_or_index],
            confidence=self.confidence[mask_or_index],
            file_slot=self.file_slot,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "file_slot": self.file_slot,
            "time": self.time.tolist(),
            "frequency": self.frequency.tolist(),
            "confidence": self.confidence.tolist(),
        }


@dataclass(frozen=True)
class PitchStatistics:
    median: int
    min: int
    max: int
    speaking_range_low: int
    speaking_range_high: int

    def to_payload(self) -> dict[str, int]:
        return {
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "speaking_range_low": self.speaking_range_low,
            "speaking_range_high": self.speaking_range_high,
        }


@dataclass(frozen=True)
class ProgressEvent:
    file_slot: int
    percent: float


# Worker -> caller messages for the parallel backend.


@dataclass(frozen=True)
class ProgressMessage:
    file_slot: int
    percent: float


@dataclass(frozen=True)
class ResultMessage:
    file_slot: int
    track: PitchTrack


@dataclass(frozen=True)
class ErrorMessage:
    file_slot: int
    message: str


__all__ = [
    "AnalysisRequest",
    "BackendFault",
    "ErrorMessage",
    "FileSlot",
    "NoPitchError",
    "PerFileAnalysisError",
    "PitchEstimate",
    "PitchObservation",
    "PitchStatistics",
    "PitchTrack",
    "ProgressEvent",
    "ProgressMessage",
    "ResultMessage",
]
