"""Vocal pitch analysis: YIN tracking, cleaning and speaking-range statistics."""

from .core import AnalysisRequest, AnalysisScheduler, analyze, summarize

__all__ = ["AnalysisRequest", "AnalysisScheduler", "analyze", "summarize"]
