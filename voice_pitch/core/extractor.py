from __future__ import annotations

import asyncio
import logging

from .pitch_pipeline import AnalysisReport, AnalysisScheduler, CompletionCallback, ProgressCallback
from .smoothing import clean_track
from .stats import compute_statistics
from .types import AnalysisRequest, PitchStatistics, PitchTrack

LOGGER = logging.getLogger(__name__)


def analyze(
    *requests: AnalysisRequest,
    prefer_parallel: bool | None = None,
    on_progress: ProgressCallback | None = None,
    on_complete: CompletionCallback | None = None,
) -> AnalysisReport:
    """Run one blocking analysis session for callers without an event loop."""

    scheduler = AnalysisScheduler(prefer_parallel=prefer_parallel)
    report = asyncio.run(scheduler.analyze(requests, on_progress=on_progress, on_complete=on_complete))
    for slot, outcome in sorted(report.outcomes.items()):
        stats = outcome.statistics()
        if stats is None:
            LOGGER.info("File %s (%s): no valid pitch detected", slot, outcome.status)
        else:
            LOGGER.info("File %s: median %d Hz range %d-%d Hz", slot, stats.median, stats.speaking_range_low, stats.speaking_range_high)
    return report


def summarize(track: PitchTrack | None) -> tuple[PitchTrack | None, PitchStatistics | None]:
    """Cleaned track and statistics for a raw track; both ``None`` when nothing survives."""

    cleaned = clean_track(track)
    return cleaned, compute_statistics(cleaned)
