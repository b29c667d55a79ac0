"""Entry point executed inside a parallel-backend worker process."""

from __future__ import annotations

import logging
from typing import Any

from .pitch_engine import estimate_track
from .types import AnalysisRequest, ErrorMessage, ProgressEvent, ProgressMessage, ResultMessage

LOGGER = logging.getLogger(__name__)


def run_worker(request: AnalysisRequest, responses: Any) -> None:
    """Analyse one request and post progress, then exactly one result or error.

    ``responses`` is a multiprocessing queue owned by the caller; nothing else
    is shared with the parent process.
    """

    slot = int(request.file_slot)

    def _post_progress(event: ProgressEvent) -> None:
        responses.put(ProgressMessage(file_slot=event.file_slot, percent=event.percent))

    try:
        track = estimate_track(request, emit=_post_progress)
    except Exception as exc:
        LOGGER.warning("[worker-error] file=%s error=%s", slot, exc)
        responses.put(ErrorMessage(file_slot=slot, message=f"{exc.__class__.__name__}: {exc}"))
        return
    responses.put(ResultMessage(file_slot=slot, track=track))


__all__ = ["run_worker"]
