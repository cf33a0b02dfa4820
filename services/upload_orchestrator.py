# User value: This file walks users from picking a contract file to a confirmed vendor without dead ends.
# services/upload_orchestrator.py
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional

from config import (
    JOB_MIN_PROCESSING_SEC,
    JOB_POLL_INTERVAL_SEC,
    JOB_TIMEOUT_SEC,
    MAX_UPLOAD_FILE_SIZE_BYTES,
    NAME_CHECK_DEBOUNCE_SEC,
)
from schemas.job_contract import (
    DEFAULT_ALLOWED_MIME_TYPES,
    POLLER_COMPLETED,
    POLLER_FAILED,
    POLLER_TIMED_OUT,
)
from schemas.responses import VendorCreationResult
from services.errors import ReviewSubmissionError, ReviewValidationError
from services.extraction_review import MODE_CREATE, MODE_REPLACE, REVIEW_MODES, ExtractionReviewForm
from services.job_poller import JobPoller, PollerSnapshot
from services.name_check import NameUniquenessChecker
from services.upload_gate import UploadedFile, validate_upload
from utils.stage_logging import log_stage

logger = logging.getLogger("drift.workflow")

STEP_UPLOAD = "upload"
STEP_PROCESSING = "processing"
STEP_REVIEW = "review"
STEP_DONE = "done"


class ContractUploadWorkflow:
    """One upload dialog: UploadGate, JobPoller, review, confirm.

    Failures never escape ``upload()`` or ``confirm()``; they land in
    ``error`` and the workflow stays on (or returns to) a step the user can
    act on.
    """

    def __init__(
        self,
        client,
        *,
        mode: str = MODE_CREATE,
        vendor_id: Optional[str] = None,
        on_complete: Callable[[VendorCreationResult], None] | None = None,
        on_poll: Callable[[PollerSnapshot], None] | None = None,
        allowed_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
        max_size_bytes: int = MAX_UPLOAD_FILE_SIZE_BYTES,
        poll_interval_sec: float = JOB_POLL_INTERVAL_SEC,
        timeout_sec: float = JOB_TIMEOUT_SEC,
        min_processing_sec: float = JOB_MIN_PROCESSING_SEC,
        debounce_sec: float = NAME_CHECK_DEBOUNCE_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        if mode not in REVIEW_MODES:
            raise ValueError(f"Unknown workflow mode {mode!r}")
        if mode == MODE_REPLACE and not vendor_id:
            raise ValueError("vendor_id is required to replace a contract")

        self._client = client
        self.mode = mode
        self.vendor_id = vendor_id
        self._on_complete = on_complete
        self.allowed_types = tuple(allowed_types)
        self.max_size_bytes = max_size_bytes
        self.debounce_sec = debounce_sec
        self._sleep = sleep

        self.poller = JobPoller(
            client.get_processing_job,
            poll_interval_sec=poll_interval_sec,
            timeout_sec=timeout_sec,
            min_processing_sec=min_processing_sec,
            clock=clock,
            sleep=sleep,
            on_change=on_poll,
            workflow=mode,
        )

        self.step = STEP_UPLOAD
        self.error: Optional[str] = None
        self.rejection: Optional[str] = None
        self.file: Optional[UploadedFile] = None
        self.review: Optional[ExtractionReviewForm] = None
        self.result: Optional[VendorCreationResult] = None

    def _release_file(self) -> None:
        if self.file is not None:
            self.file.release()
        self.file = None

    def _close_review(self) -> None:
        if self.review is not None:
            self.review.close()
        self.review = None

    def _submit_fn(self, file: UploadedFile):
        if self.mode == MODE_CREATE:
            return lambda: self._client.upload_contract_for_vendor_creation(file)
        return lambda: self._client.replace_vendor_contract(self.vendor_id, file)

    def _open_review(self) -> None:
        checker = NameUniquenessChecker(
            self._client.check_vendor_name,
            debounce_sec=self.debounce_sec,
            sleep=self._sleep,
            ignore_vendor_id=self.vendor_id if self.mode == MODE_REPLACE else None,
        )
        self.review = ExtractionReviewForm(
            self._client,
            job_id=self.poller.job_id,
            extraction=self.poller.result,
            mode=self.mode,
            vendor_id=self.vendor_id,
            name_checker=checker,
        )
        self.review.start()

    async def upload(self, file: Optional[UploadedFile]) -> str:
        """Validate, submit and process ``file``; returns the resulting step."""
        self.error = None
        self.rejection = None

        validation = validate_upload(file, allowed_types=self.allowed_types, max_size_bytes=self.max_size_bytes)
        if not validation.valid:
            self.error = validation.message
            self.rejection = validation.reason
            log_stage(
                job_id="upload-gate",
                stage="upload",
                event="rejected",
                workflow=self.mode,
                vendor_id=self.vendor_id,
                reason=validation.reason,
                filename=file.name if file is not None else None,
                size_bytes=file.size if file is not None else None,
            )
            return self.step

        self._close_review()
        if self.file is not file:
            self._release_file()
        self.file = file
        self.result = None
        self.step = STEP_PROCESSING

        if self.poller.is_active:
            self.poller.cancel()
        generation = self.poller.generation + 1
        state = await self.poller.run(self._submit_fn(file))
        if generation != self.poller.generation:
            # Superseded by close() or a newer upload.
            return self.step

        if state == POLLER_COMPLETED:
            self._open_review()
            self.step = STEP_REVIEW
        elif state in (POLLER_FAILED, POLLER_TIMED_OUT):
            self.error = self.poller.error
            self.step = STEP_UPLOAD
        return self.step

    async def confirm(self) -> Optional[VendorCreationResult]:
        if self.step != STEP_REVIEW or self.review is None:
            self.error = "There is no reviewed contract to confirm"
            return None

        self.error = None
        try:
            result = await self.review.submit()
        except (ReviewValidationError, ReviewSubmissionError) as exc:
            self.error = exc.error_message
            logger.warning(
                "workflow_confirm_failed mode=%s job_id=%s error_code=%s error=%s",
                self.mode,
                self.review.job_id,
                exc.error_code,
                exc.error_message,
            )
            return None

        self.result = result
        self.step = STEP_DONE
        self.review.close()
        self._release_file()
        if self._on_complete is not None:
            self._on_complete(result)
        return result

    def close(self) -> None:
        """Abandon the workflow; in-flight responses are ignored afterwards."""
        self.poller.cancel()
        self._close_review()
        self._release_file()
        self.step = STEP_UPLOAD
        self.error = None
        self.rejection = None
