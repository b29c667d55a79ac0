"""Runtime configuration flags for the analysis engine."""

from __future__ import annotations

import os


def _env_flag(name: str, default: str = "true") -> bool:
    value = os.getenv(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


PARALLEL_ENABLED = _env_flag("VOICE_PITCH_PARALLEL", "true")
START_METHOD = os.getenv("VOICE_PITCH_START_METHOD", "spawn").strip().lower()
POLL_INTERVAL = _env_float("VOICE_PITCH_POLL_INTERVAL", 0.05)
