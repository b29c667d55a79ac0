"""Plain-data views of analysis results for the display and charting layers."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .pitch_pipeline import FileOutcome
from .types import PitchStatistics
from .utils import FMAX, FMIN

NO_PITCH_TEXT = "No valid pitch detected"
DEFAULT_MAX_TIME = 10.0
LABEL_POSITION = 0.05  # fraction of max_time where band labels sit

VOICE_BANDS: tuple[dict[str, Any], ...] = (
    {"name": "male", "label": "Male", "low": 85.0, "high": 180.0, "label_at": 130.0},
    {"name": "androgynous", "label": "Androgynous", "low": 145.0, "high": 175.0, "label_at": 160.0},
    {"name": "female", "label": "Female", "low": 165.0, "high": 255.0, "label_at": 210.0},
)


def format_statistics(stats: PitchStatistics | None) -> Dict[str, str]:
    if stats is None:
        return {"average": NO_PITCH_TEXT, "min": "-", "max": "-"}
    return {
        "average": f"{stats.median} Hz (Range: {stats.speaking_range_low}-{stats.speaking_range_high} Hz)",
        "min": f"{stats.min} Hz",
        "max": f"{stats.max} Hz",
    }


def chart_payload(outcomes: Mapping[int, FileOutcome]) -> Dict[str, Any]:
    """Series of cleaned tracks plus the reference speaking bands.

    Slots whose cleaned track is absent contribute no series.
    """

    series = []
    for slot in sorted(outcomes):
        cleaned = outcomes[slot].cleaned()
        if cleaned is None or cleaned.is_empty:
            continue
        series.append(
            {
                "file_slot": slot,
                "label": f"File {slot}",
                "points": [{"x": float(t), "y": float(f)} for t, f in zip(cleaned.time, cleaned.frequency)],
            }
        )

    if series:
        max_time = max(point["x"] for item in series for point in item["points"])
    else:
        max_time = DEFAULT_MAX_TIME

    return {
        "series": series,
        "y_range": [FMIN, FMAX],
        "max_time": max_time,
        "label_x": max_time * LABEL_POSITION,
        "bands": [dict(band) for band in VOICE_BANDS],
    }


__all__ = ["NO_PITCH_TEXT", "VOICE_BANDS", "chart_payload", "format_statistics"]
