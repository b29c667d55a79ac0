import logging

import numpy as np
import pytest

from voice_pitch.core.types import AnalysisRequest, PitchTrack


def make_sine(frequency, duration=1.0, sample_rate=44100, amplitude=0.5):
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def make_track(times, pitches, confidences=None, file_slot=1):
    times = np.asarray(times, dtype=float)
    pitches = np.asarray(pitches, dtype=float)
    if confidences is None:
        confidences = np.full(pitches.shape, 0.9)
    return PitchTrack(
        time=times,
        frequency=pitches,
        confidence=np.asarray(confidences, dtype=float),
        file_slot=file_slot,
    )


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Keep the root logger's handlers intact across the session."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers.copy()
    yield
    root_logger.handlers = handlers


@pytest.fixture
def sine_request():
    def _factory(frequency=150.0, duration=1.0, sample_rate=44100, file_slot=1, channels=1):
        mono = make_sine(frequency, duration, sample_rate)
        data = np.tile(mono, (channels, 1))
        return AnalysisRequest(file_slot=file_slot, channels=data, sample_rate=sample_rate)

    return _factory


@pytest.fixture
def silence_request():
    return AnalysisRequest(file_slot=2, channels=np.zeros((2, 44100), dtype=np.float32), sample_rate=44100)
