# User value: This file follows one contract-processing job until it is ready, failed, or taking too long.
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from config import JOB_MIN_PROCESSING_SEC, JOB_POLL_INTERVAL_SEC, JOB_TIMEOUT_SEC
from schemas.job_contract import (
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_TIMEOUT,
    MESSAGE_MISSING_RESULT,
    MESSAGE_PROCESSING_FAILED,
    MESSAGE_PROCESSING_TIMEOUT,
    POLLER_COMPLETED,
    POLLER_FAILED,
    POLLER_IDLE,
    POLLER_POLLING,
    POLLER_SUBMITTING,
    POLLER_TERMINAL_STATES,
    POLLER_TIMED_OUT,
)
from schemas.responses import ContractExtractionData, ProcessingJob
from services.errors import DriftError
from utils.stage_logging import log_stage
from utils.status_machine import check_poller_transition

logger = logging.getLogger("drift.poller")

SubmitFn = Callable[[], Awaitable[str]]
FetchFn = Callable[[str], Awaitable[ProcessingJob]]


# User value: gives users steady progress feedback even though the server reports none worth trusting.
def estimate_progress(
    elapsed_ms: float,
    *,
    min_processing_ms: float = JOB_MIN_PROCESSING_SEC * 1000,
    timeout_ms: float = JOB_TIMEOUT_SEC * 1000,
) -> float:
    elapsed_ms = max(0.0, float(elapsed_ms))
    if elapsed_ms < min_processing_ms:
        return (elapsed_ms / min_processing_ms) * 80
    if elapsed_ms < timeout_ms:
        return 80 + ((elapsed_ms - min_processing_ms) / (timeout_ms - min_processing_ms)) * 15
    return 95.0


@dataclass(frozen=True)
class PollerSnapshot:
    state: str
    generation: int
    job_id: Optional[str] = None
    progress: float = 0.0
    result: Optional[ContractExtractionData] = None
    error: Optional[str] = None


class JobPoller:
    """Submit a document and poll its processing job to a terminal state.

    Each submit starts a new generation. Responses that arrive for an older
    generation (after a re-submit or ``cancel()``) are discarded, so a
    late poll can never overwrite the state of the current job.
    """

    def __init__(
        self,
        fetch_job: FetchFn,
        *,
        poll_interval_sec: float = JOB_POLL_INTERVAL_SEC,
        timeout_sec: float = JOB_TIMEOUT_SEC,
        min_processing_sec: float = JOB_MIN_PROCESSING_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        on_change: Callable[[PollerSnapshot], None] | None = None,
        workflow: str = "contract",
    ):
        self._fetch_job = fetch_job
        self.poll_interval_sec = poll_interval_sec
        self.timeout_sec = timeout_sec
        self.min_processing_sec = min_processing_sec
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._on_change = on_change
        self.workflow = workflow

        self.state = POLLER_IDLE
        self.generation = 0
        self.job_id: Optional[str] = None
        self.progress = 0.0
        self.result: Optional[ContractExtractionData] = None
        self.error: Optional[str] = None
        self.poll_count = 0
        self._started_at: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self.state in (POLLER_SUBMITTING, POLLER_POLLING)

    @property
    def is_terminal(self) -> bool:
        return self.state in POLLER_TERMINAL_STATES

    def snapshot(self) -> PollerSnapshot:
        return PollerSnapshot(
            state=self.state,
            generation=self.generation,
            job_id=self.job_id,
            progress=self.progress,
            result=self.result,
            error=self.error,
        )

    def elapsed_sec(self) -> float:
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    # ------------------------------------------------------------------
    # state helpers
    # ------------------------------------------------------------------
    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())

    def _move(self, target: str, *, context: str) -> bool:
        if not check_poller_transition(self.state, target, context=context, job_id=self.job_id or ""):
            return False
        self.state = target
        return True

    def _is_stale(self, generation: int, job_id: Optional[str] = None) -> bool:
        if generation == self.generation:
            return False
        log_stage(
            job_id=job_id or "",
            stage="poll",
            event="discarded",
            workflow=self.workflow,
            generation=generation,
            current_generation=self.generation,
        )
        return True

    def _finish(self, target: str, *, error: Optional[str] = None, result: Optional[ContractExtractionData] = None) -> None:
        if not self._move(target, context="finish"):
            return
        self.result = result
        self.error = error
        if target == POLLER_COMPLETED:
            self.progress = 100.0
        log_stage(
            job_id=self.job_id or "",
            stage="poll",
            event=target,
            workflow=self.workflow,
            error=error if target == POLLER_FAILED else None,
            polls=self.poll_count,
            elapsed_sec=round(self.elapsed_sec(), 3),
        )
        self._notify()

    def _tick_progress(self) -> None:
        estimate = estimate_progress(
            self.elapsed_sec() * 1000,
            min_processing_ms=self.min_processing_sec * 1000,
            timeout_ms=self.timeout_sec * 1000,
        )
        # Never move backwards within a generation.
        self.progress = max(self.progress, estimate)
        self._notify()

    def _apply_job(self, job: ProcessingJob) -> bool:
        """Apply one poll response; returns True when polling must stop."""
        if job.status == JOB_STATUS_COMPLETED:
            if job.result is None:
                self._finish(POLLER_FAILED, error=MESSAGE_MISSING_RESULT)
            else:
                self._finish(POLLER_COMPLETED, result=job.result)
            return True
        if job.status == JOB_STATUS_FAILED:
            self._finish(POLLER_FAILED, error=job.error or MESSAGE_PROCESSING_FAILED)
            return True
        if job.status == JOB_STATUS_TIMEOUT:
            self._finish(POLLER_TIMED_OUT, error=MESSAGE_PROCESSING_TIMEOUT)
            return True
        return False

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def _begin(self) -> int:
        if self.is_active:
            self._abandon(context="resubmit")
        self._move(POLLER_SUBMITTING, context="submit")
        self.generation += 1
        self.job_id = None
        self.progress = 0.0
        self.result = None
        self.error = None
        self.poll_count = 0
        self._started_at = self._clock()
        self._notify()
        return self.generation

    def _abandon(self, *, context: str) -> None:
        self.generation += 1
        if self.is_active:
            self._move(POLLER_IDLE, context=context)
            log_stage(job_id=self.job_id or "", stage="poll", event="cancelled", workflow=self.workflow)
            self._notify()

    async def run(self, submit: SubmitFn) -> str:
        """Submit, then poll until a terminal state. Returns the final state."""
        generation = self._begin()

        try:
            job_id = await submit()
        except DriftError as exc:
            if self._is_stale(generation):
                return self.state
            self._finish(POLLER_FAILED, error=exc.error_message)
            return self.state

        if self._is_stale(generation, job_id):
            return self.state

        self.job_id = job_id
        self._move(POLLER_POLLING, context="submitted")
        log_stage(job_id=job_id, stage="poll", event="started", workflow=self.workflow)
        self._notify()

        while True:
            remaining = self.timeout_sec - self.elapsed_sec()
            if remaining <= 0:
                self._finish(POLLER_TIMED_OUT, error=MESSAGE_PROCESSING_TIMEOUT)
                return self.state

            try:
                job = await asyncio.wait_for(self._fetch_job(job_id), timeout=remaining)
            except asyncio.TimeoutError:
                if self._is_stale(generation, job_id):
                    return self.state
                self._finish(POLLER_TIMED_OUT, error=MESSAGE_PROCESSING_TIMEOUT)
                return self.state
            except DriftError as exc:
                if self._is_stale(generation, job_id):
                    return self.state
                self.poll_count += 1
                logger.warning(
                    "job_poll_error job_id=%s error_code=%s error=%s",
                    job_id,
                    exc.error_code,
                    exc.error_message,
                )
            else:
                if self._is_stale(generation, job_id):
                    return self.state
                self.poll_count += 1
                if self._apply_job(job):
                    return self.state

            self._tick_progress()

            remaining = self.timeout_sec - self.elapsed_sec()
            await self._sleep(max(0.0, min(self.poll_interval_sec, remaining)))
            if self._is_stale(generation, job_id):
                return self.state

    def start(self, submit: SubmitFn) -> asyncio.Task:
        """Run the lifecycle in a background task owned by this poller."""
        self.cancel()
        self._task = asyncio.create_task(self.run(submit))
        return self._task

    def cancel(self) -> None:
        """Stop polling; late responses of the abandoned job are ignored."""
        self._abandon(context="cancel")
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
