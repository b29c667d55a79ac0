"""Core of the voice pitch analysis engine."""

from . import audio_utils, pitch_engine, pitch_pipeline, smoothing, stats, yin_engine
from .extractor import analyze, summarize
from .pitch_pipeline import AnalysisReport, AnalysisScheduler, FileOutcome
from .types import AnalysisRequest, PitchStatistics, PitchTrack, ProgressEvent

__all__ = [
    "AnalysisReport",
    "AnalysisRequest",
    "AnalysisScheduler",
    "FileOutcome",
    "PitchStatistics",
    "PitchTrack",
    "ProgressEvent",
    "analyze",
    "audio_utils",
    "pitch_engine",
    "pitch_pipeline",
    "smoothing",
    "stats",
    "summarize",
    "yin_engine",
]
