# User value: This file delivers large CSV reports with progress, early warnings, and instant cancel.
import asyncio
import io
import logging
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, BinaryIO, Callable, Optional, Tuple

import httpx
from pydantic import ValidationError

from config import EXPORT_POLL_INTERVAL_SEC
from schemas.job_contract import EXPORT_ID_HEADER, EXPORT_STATUS_CANCELLED, EXPORT_TERMINAL_STATUSES
from schemas.requests import EXPORT_FILTER_MODELS, ExportFilters
from schemas.responses import CancelExportResponse, ExportProgress, ExportValidation
from services.errors import ApiError, ExportCancelledError, ExportValidationError
from services.feature_flags import is_export_preflight_enabled
from utils.stage_logging import log_stage

logger = logging.getLogger("drift.export")

UNKNOWN_EXPORT_ID = "unknown"
_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')


@dataclass
class ExportDownload:
    export_id: str
    kind: str
    filename: str
    size_bytes: int
    content_type: str = "text/csv"
    content: Optional[bytes] = None
    path: Optional[Path] = None


# User value: turns loose filter input into the typed filters each report accepts.
def build_export_filters(kind: str, filters: Any = None) -> ExportFilters:
    model = EXPORT_FILTER_MODELS.get(kind)
    if model is None:
        raise ValueError(f"Unknown export kind {kind!r}")
    if filters is None:
        return model()
    if isinstance(filters, model):
        return filters
    if isinstance(filters, ExportFilters):
        filters = filters.model_dump(exclude_none=True)
    try:
        return model.model_validate(filters)
    except ValidationError as exc:
        raise ExportValidationError(
            f"Invalid {kind} export filters",
            errors=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()],
        ) from exc


def _filename_from_headers(response: httpx.Response, kind: str) -> str:
    match = _FILENAME_RE.search(response.headers.get("content-disposition", ""))
    if match:
        return match.group(1).strip()
    return f"{kind}_export_{date.today().isoformat()}.csv"


class StreamingExportClient:
    """Export invoices, findings or disputes as CSV and follow their progress.

    ``cancel()`` flags the export locally before the server is told, so any
    ``track()`` or ``export()`` loop for that id stops at once.
    """

    def __init__(
        self,
        client,
        *,
        poll_interval_sec: float = EXPORT_POLL_INTERVAL_SEC,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        preflight: Optional[bool] = None,
    ):
        self._client = client
        self.poll_interval_sec = poll_interval_sec
        self._sleep = sleep or asyncio.sleep
        self.preflight = is_export_preflight_enabled() if preflight is None else preflight
        self._cancelled: set[str] = set()
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._running: dict[str, int] = {}

    def _cancel_event(self, export_id: str) -> asyncio.Event:
        event = self._cancel_events.get(export_id)
        if event is None:
            event = asyncio.Event()
            if export_id in self._cancelled:
                event.set()
            self._cancel_events[export_id] = event
        return event

    def is_cancelled(self, export_id: str) -> bool:
        return export_id in self._cancelled

    def _acquire(self, export_id: str) -> None:
        self._running[export_id] = self._running.get(export_id, 0) + 1

    def _release(self, export_id: str) -> None:
        """Forget the cancel state of ``export_id`` once its last run has ended."""
        remaining = self._running.get(export_id, 0) - 1
        if remaining > 0:
            self._running[export_id] = remaining
            return
        self._running.pop(export_id, None)
        self._cancel_events.pop(export_id, None)
        self._cancelled.discard(export_id)

    async def _until_cancelled(self, export_id: str, awaitable: Awaitable) -> Tuple[bool, Any]:
        """Await ``awaitable`` unless ``export_id`` is cancelled first."""
        if self.is_cancelled(export_id):
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return True, None

        work = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(self._cancel_event(export_id).wait())
        try:
            await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            if not stop.done():
                stop.cancel()

        if self.is_cancelled(export_id):
            if not work.done():
                work.cancel()
                await asyncio.wait({work})
            return True, None
        return False, work.result()

    async def validate(self, kind: str, filters: Any = None) -> ExportValidation:
        model = build_export_filters(kind, filters)
        return await self._client.validate_export_params(kind, model.model_dump(exclude_none=True))

    async def export(self, kind: str, filters: Any = None, destination: str | Path | None = None) -> ExportDownload:
        model = build_export_filters(kind, filters)

        if self.preflight:
            validation = await self._client.validate_export_params(kind, model.model_dump(exclude_none=True))
            if not validation.valid:
                log_stage(
                    job_id="export-preflight",
                    stage="export",
                    event="rejected",
                    export_kind=kind,
                    errors="; ".join(validation.errors),
                )
                raise ExportValidationError(
                    "Export parameters are invalid: " + "; ".join(validation.errors),
                    errors=validation.errors,
                )

        target = Path(destination) if destination is not None else None
        async with self._client.stream_export(kind, model.to_query_params()) as response:
            export_id = response.headers.get(EXPORT_ID_HEADER) or UNKNOWN_EXPORT_ID
            filename = _filename_from_headers(response, kind)
            content_type = response.headers.get("content-type", "text/csv").split(";")[0].strip()
            log_stage(job_id=export_id, stage="export", event="started", export_kind=kind, filename=filename)

            sink: BinaryIO = open(target, "wb") if target is not None else io.BytesIO()
            self._acquire(export_id)
            try:
                cancelled, size = await self._until_cancelled(export_id, self._drain(response, sink))
                if cancelled:
                    raise ExportCancelledError(f"Export {export_id} was cancelled")
                content = sink.getvalue() if target is None else None
            except BaseException:
                sink.close()
                if target is not None:
                    target.unlink(missing_ok=True)
                raise
            finally:
                self._release(export_id)
            sink.close()

        log_stage(job_id=export_id, stage="export", event="completed", export_kind=kind, size_bytes=size)
        return ExportDownload(
            export_id=export_id,
            kind=kind,
            filename=filename,
            size_bytes=size,
            content_type=content_type or "text/csv",
            content=content,
            path=target,
        )

    @staticmethod
    async def _drain(response: httpx.Response, sink: BinaryIO) -> int:
        size = 0
        async for chunk in response.aiter_bytes():
            sink.write(chunk)
            size += len(chunk)
        return size

    async def track(
        self,
        export_id: str,
        on_progress: Callable[[ExportProgress], None] | None = None,
    ) -> ExportProgress:
        """Poll progress until the export is completed, failed or cancelled."""
        self._acquire(export_id)
        try:
            return await self._poll_progress(export_id, on_progress)
        finally:
            self._release(export_id)

    async def _poll_progress(
        self,
        export_id: str,
        on_progress: Callable[[ExportProgress], None] | None,
    ) -> ExportProgress:
        last: Optional[ExportProgress] = None
        while True:
            cancelled, progress = await self._until_cancelled(export_id, self._client.get_export_progress(export_id))
            if cancelled:
                return self._cancelled_progress(export_id, last)

            last = progress
            if on_progress is not None:
                on_progress(progress)
            if progress.status in EXPORT_TERMINAL_STATUSES:
                log_stage(job_id=export_id, stage="export_progress", event=progress.status, error=progress.error)
                return progress

            cancelled, _ = await self._until_cancelled(export_id, self._sleep(self.poll_interval_sec))
            if cancelled:
                return self._cancelled_progress(export_id, last)

    @staticmethod
    def _cancelled_progress(export_id: str, last: Optional[ExportProgress]) -> ExportProgress:
        base = {"progress": 0.0, "total_records": 0, "processed_records": 0}
        if last is not None:
            base = {
                "progress": last.progress,
                "total_records": last.total_records,
                "processed_records": last.processed_records,
            }
        return ExportProgress(
            export_id=export_id,
            status=EXPORT_STATUS_CANCELLED,
            current_step="Cancelled by user",
            **base,
        )

    async def cancel(self, export_id: str) -> CancelExportResponse:
        if not export_id or export_id == UNKNOWN_EXPORT_ID:
            logger.warning("export_cancel_refused export_id=%s reason=no_server_export_id", export_id)
            return CancelExportResponse(
                success=False,
                message="This export has no server export id and cannot be cancelled",
                export_id=export_id or None,
            )

        self._cancelled.add(export_id)
        self._cancel_event(export_id).set()
        log_stage(job_id=export_id, stage="export", event="cancel_requested")

        try:
            return await self._client.cancel_export(export_id)
        except ApiError as exc:
            logger.warning(
                "export_cancel_failed export_id=%s error_code=%s error=%s",
                export_id,
                exc.error_code,
                exc.error_message,
            )
            return CancelExportResponse(success=False, message=exc.error_message, export_id=export_id)

    async def active(self) -> list[ExportProgress]:
        return await self._client.list_active_exports()
