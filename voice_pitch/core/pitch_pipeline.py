from __future__ import annotations

import asyncio
import logging
import multiprocessing as mp
import queue
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, Iterable, List, Literal, Sequence

from . import config
from .pitch_engine import TrackEstimator
from .smoothing import clean_track
from .stats import compute_statistics
from .types import (
    AnalysisRequest,
    BackendFault,
    ErrorMessage,
    NoPitchError,
    PerFileAnalysisError,
    PitchStatistics,
    PitchTrack,
    ProgressEvent,
    ProgressMessage,
    ResultMessage,
)
from .utils import BATCH_HOPS
from .worker import run_worker

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
WorkerTarget = Callable[[AnalysisRequest, Any], None]

MAX_SLOTS = 2
SILENT_EXIT_POLLS = 20


@dataclass
class FileOutcome:
    file_slot: int
    status: Literal["completed", "failed"]
    track: PitchTrack | None = None
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def cleaned(self) -> PitchTrack | None:
        """Recomputed on every call; cleaning is cheap next to estimation."""

        if self.track is None:
            return None
        return clean_track(self.track)

    def statistics(self) -> PitchStatistics | None:
        return compute_statistics(self.cleaned())

    @property
    def is_empty(self) -> bool:
        return self.completed and self.cleaned() is None

    def require_statistics(self) -> PitchStatistics:
        stats = self.statistics()
        if stats is None:
            raise NoPitchError(f"No valid pitch detected for file {self.file_slot}.")
        return stats


@dataclass
class AnalysisReport:
    backend: str
    outcomes: Dict[int, FileOutcome] = field(default_factory=dict)

    def __getitem__(self, file_slot: int) -> FileOutcome:
        return self.outcomes[file_slot]

    def tracks(self) -> Dict[int, PitchTrack]:
        return {slot: outcome.track for slot, outcome in self.outcomes.items() if outcome.track is not None}


CompletionCallback = Callable[[AnalysisReport], None]


class CompletionTracker:
    """Counts files still running and fires the completion callback exactly once.

    Only touched from the event loop thread, so updates never interleave.
    """

    def __init__(
        self,
        slots: Iterable[int],
        backend: str,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        self._remaining = set(slots)
        self._fired = False
        self._on_complete = on_complete
        self.report = AnalysisReport(backend=backend)

    @property
    def remaining(self) -> int:
        return len(self._remaining)

    @property
    def complete(self) -> bool:
        return self._fired

    def record(self, outcome: FileOutcome) -> bool:
        if outcome.file_slot not in self._remaining:
            LOGGER.warning("Ignoring duplicate outcome for file %s", outcome.file_slot)
            return False
        self._remaining.discard(outcome.file_slot)
        self.report.outcomes[outcome.file_slot] = outcome
        if self._remaining or self._fired:
            return False
        self._fired = True
        LOGGER.info("[analysis-complete] backend=%s files=%s", self.report.backend, sorted(self.report.outcomes))
        if self._on_complete is not None:
            self._on_complete(self.report)
        return True


class RunListener:
    """Receives progress and terminal outcomes from a backend run.

    ``high_water`` holds the highest percent already forwarded per file. It is
    shared by every backend attempt of one scheduler call, so a restarted file
    stays quiet until it catches up with what the caller has already seen.
    """

    def __init__(
        self,
        tracker: CompletionTracker,
        on_progress: ProgressCallback | None = None,
        high_water: Dict[int, float] | None = None,
    ) -> None:
        self.tracker = tracker
        self._on_progress = on_progress
        self._high_water = {} if high_water is None else high_water

    def progress(self, event: ProgressEvent) -> None:
        seen = self._high_water.get(event.file_slot)
        if seen is not None and event.percent < seen:
            return
        self._high_water[event.file_slot] = event.percent
        LOGGER.debug("File %s progress %.1f%%", event.file_slot, event.percent)
        if self._on_progress is not None:
            self._on_progress(event)

    def progress_many(self, events: Iterable[ProgressEvent]) -> None:
        for event in events:
            self.progress(event)

    def finished(self, outcome: FileOutcome) -> None:
        if outcome.completed:
            count = len(outcome.track) if outcome.track is not None else 0
            LOGGER.info("[file-complete] %s observations=%d", outcome.file_slot, count)
        else:
            LOGGER.warning("[file-failed] %s error=%s", outcome.file_slot, outcome.error)
        self.tracker.record(outcome)


class AnalysisBackend(ABC):
    name = "unknown"

    @abstractmethod
    async def run(self, requests: Sequence[AnalysisRequest], listener: RunListener) -> None:
        """Drive every request to a terminal outcome reported through ``listener``.

        Raises ``BackendFault`` when the backend itself breaks down.
        """


class CooperativeBackend(AnalysisBackend):
    """Runs on the caller's event loop, one file at a time, yielding between batches."""

    name = "cooperative"

    def __init__(self, batch_hops: int = BATCH_HOPS) -> None:
        if batch_hops <= 0:
            raise ValueError("batch_hops must be positive")
        self.batch_hops = batch_hops

    async def run(self, requests: Sequence[AnalysisRequest], listener: RunListener) -> None:
        for request in sorted(requests, key=lambda item: item.file_slot):
            LOGGER.info("[file-start] %s backend=%s", request.file_slot, self.name)
            listener.finished(await self._run_file(request, listener))

    def _batches(
        self, request: AnalysisRequest
    ) -> Generator[List[ProgressEvent], None, tuple[PitchTrack, ProgressEvent]]:
        estimator = TrackEstimator(request)
        yield estimator.begin()
        while not estimator.done:
            yield estimator.advance(self.batch_hops)
        return estimator.finish()

    async def _run_file(self, request: AnalysisRequest, listener: RunListener) -> FileOutcome:
        # Only estimator errors fail the file; listener errors propagate to the caller.
        slot = int(request.file_slot)
        batches = self._batches(request)
        while True:
            try:
                events = next(batches)
            except StopIteration as stop:
                track, final = stop.value
                break
            except Exception as exc:
                error = PerFileAnalysisError(slot, f"{exc.__class__.__name__}: {exc}")
                LOGGER.exception("File %s crashed on the cooperative backend", slot)
                return FileOutcome(file_slot=slot, status="failed", error=error.reason)
            listener.progress_many(events)
            await asyncio.sleep(0)
        listener.progress(final)
        return FileOutcome(file_slot=slot, status="completed", track=track)



def _poll(responses: Any, timeout: float) -> Any:
    try:
        return responses.get(timeout=timeout)
    except queue.Empty:
        return None


class ParallelBackend(AnalysisBackend):
    """One worker process per file; the only channel back is a response queue."""

    name = "parallel"

    def __init__(
        self,
        start_method: str | None = None,
        poll_interval: float | None = None,
        worker_target: WorkerTarget = run_worker,
    ) -> None:
        self.start_method = start_method or config.START_METHOD
        self.poll_interval = config.POLL_INTERVAL if poll_interval is None else poll_interval
        self._target = worker_target

    @classmethod
    def is_supported(cls, start_method: str | None = None) -> bool:
        method = start_method or config.START_METHOD
        return method in mp.get_all_start_methods()

    async def run(self, requests: Sequence[AnalysisRequest], listener: RunListener) -> None:
        loop = asyncio.get_running_loop()
        try:
            ctx = mp.get_context(self.start_method)
            responses = ctx.Queue()
        except (ValueError, OSError) as exc:
            raise BackendFault(f"cannot create worker context: {exc}") from exc

        workers: Dict[int, Any] = {}
        try:
            for request in requests:
                slot = int(request.file_slot)
                process = ctx.Process(
                    target=self._target,
                    args=(request, responses),
                    name=f"voice-pitch-file-{slot}",
                    daemon=True,
                )
                try:
                    process.start()
                except Exception as exc:
                    raise BackendFault(f"worker for file {slot} failed to start: {exc}") from exc
                workers[slot] = process
                LOGGER.info("[file-start] %s backend=%s pid=%s", slot, self.name, process.pid)

            pending = set(workers)
            silent_polls = {slot: 0 for slot in workers}
            while pending:
                message = await loop.run_in_executor(None, _poll, responses, self.poll_interval)
                if message is None:
                    self._check_workers(workers, pending, silent_polls)
                    continue
                slot = getattr(message, "file_slot", None)
                if slot not in pending:
                    LOGGER.debug("Dropping message for inactive file %s", slot)
                    continue
                if isinstance(message, ProgressMessage):
                    listener.progress(ProgressEvent(slot, message.percent))
                elif isinstance(message, ResultMessage):
                    pending.discard(slot)
                    listener.finished(FileOutcome(file_slot=slot, status="completed", track=message.track))
                elif isinstance(message, ErrorMessage):
                    pending.discard(slot)
                    listener.finished(FileOutcome(file_slot=slot, status="failed", error=message.message))
                else:
                    raise BackendFault(f"unexpected worker message {type(message).__name__}")
        finally:
            for process in workers.values():
                if process.is_alive():
                    process.terminate()
                process.join(timeout=1.0)
            responses.close()
            responses.cancel_join_thread()

    @staticmethod
    def _check_workers(workers: Dict[int, Any], pending: set, silent_polls: Dict[int, int]) -> None:
        for slot in sorted(pending):
            process = workers[slot]
            if process.is_alive():
                continue
            if process.exitcode != 0:
                raise BackendFault(f"worker for file {slot} exited with code {process.exitcode}")
            # A clean exit flushes the queue first; give the last message time to arrive.
            silent_polls[slot] += 1
            if silent_polls[slot] > SILENT_EXIT_POLLS:
                raise BackendFault(f"worker for file {slot} exited without a result")


def _validate_requests(requests: Iterable[AnalysisRequest]) -> List[AnalysisRequest]:
    ordered = sorted(requests, key=lambda item: item.file_slot)
    slots = [int(request.file_slot) for request in ordered]
    if len(set(slots)) != len(slots):
        raise ValueError(f"Duplicate file slots requested: {slots}")
    if len(slots) > MAX_SLOTS:
        raise ValueError(f"At most {MAX_SLOTS} files can be analysed together")
    return ordered


class AnalysisScheduler:
    """Runs the estimator over up to two files and owns the backend fallback policy.

    The parallel backend is preferred when available. Once it faults it stays
    disabled for the rest of this scheduler's life and every requested file is
    restarted from frame 0 on the cooperative backend; its progress is only
    forwarded again once it passes what the parallel run already reported.
    """

    def __init__(
        self,
        prefer_parallel: bool | None = None,
        batch_hops: int = BATCH_HOPS,
        parallel_backend: AnalysisBackend | None = None,
        cooperative_backend: AnalysisBackend | None = None,
    ) -> None:
        use_parallel = config.PARALLEL_ENABLED if prefer_parallel is None else prefer_parallel
        self._parallel: AnalysisBackend | None = None
        if use_parallel:
            if parallel_backend is not None:
                self._parallel = parallel_backend
            elif ParallelBackend.is_supported():
                self._parallel = ParallelBackend()
            else:
                LOGGER.warning("Start method '%s' unavailable; using the cooperative backend.", config.START_METHOD)
        self._cooperative = cooperative_backend or CooperativeBackend(batch_hops=batch_hops)

    @property
    def backend_name(self) -> str:
        return (self._parallel or self._cooperative).name

    def _backend_sequence(self) -> List[AnalysisBackend]:
        if self._parallel is None:
            return [self._cooperative]
        return [self._parallel, self._cooperative]

    async def analyze(
        self,
        requests: Iterable[AnalysisRequest],
        on_progress: ProgressCallback | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> AnalysisReport:
        ordered = _validate_requests(requests)
        slots = [int(request.file_slot) for request in ordered]

        if not ordered:
            report = AnalysisReport(backend=self.backend_name)
            LOGGER.info("[analysis-complete] backend=%s files=[]", report.backend)
            if on_complete is not None:
                on_complete(report)
            return report

        last_fault: BackendFault | None = None
        high_water: Dict[int, float] = {}
        for backend in self._backend_sequence():
            tracker = CompletionTracker(slots, backend.name, on_complete)
            listener = RunListener(tracker, on_progress, high_water)
            start = time.perf_counter()
            LOGGER.info("[backend-start] %s files=%s", backend.name, slots)
            try:
                await backend.run(ordered, listener)
            except BackendFault as exc:
                last_fault = exc
                LOGGER.warning("[backend-fault] %s error=%s", backend.name, exc)
                if backend is self._parallel:
                    LOGGER.warning("Parallel backend disabled for this session; restarting %s", slots)
                    self._parallel = None
                continue
            duration = time.perf_counter() - start
            LOGGER.info("[backend-success] %s duration=%.2fs", backend.name, duration)

            for slot in slots:
                if slot not in tracker.report.outcomes:
                    listener.finished(
                        FileOutcome(file_slot=slot, status="failed", error=f"{backend.name} backend produced no result")
                    )
            return tracker.report

        reason = f"{last_fault.__class__.__name__}: {last_fault}" if last_fault else "no backend available"
        tracker = CompletionTracker(slots, self.backend_name, on_complete)
        listener = RunListener(tracker, on_progress, high_water)
        for slot in slots:
            listener.finished(FileOutcome(file_slot=slot, status="failed", error=reason))
        return tracker.report


__all__ = [
    "AnalysisBackend",
    "AnalysisReport",
    "AnalysisScheduler",
    "CompletionTracker",
    "CooperativeBackend",
    "FileOutcome",
    "ParallelBackend",
    "RunListener",
]
