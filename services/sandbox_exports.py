# User value: This file serves CSV report exports with progress and cancel so export handling can be tried offline.
import csv
import io
import logging
from datetime import date, datetime
from typing import Iterator, List, Optional, Tuple

from fastapi import HTTPException

from schemas.job_contract import (
    EXPORT_KINDS,
    EXPORT_STATUS_CANCELLED,
    EXPORT_STATUS_COMPLETED,
    EXPORT_STATUS_PENDING,
    EXPORT_STATUS_PROCESSING,
    EXPORT_TERMINAL_STATUSES,
)
from schemas.requests import ExportFilters
from schemas.responses import ExportProgress, ExportValidation
from services.repository import Record, SandboxStore
from utils.stage_logging import log_stage

logger = logging.getLogger("sandbox.exports")

DEFAULT_CHUNK_SIZE = 100

# (estimated records, estimated seconds) per export kind.
EXPORT_ESTIMATES = {
    "invoices": (500, 30),
    "findings": (150, 15),
    "disputes": (25, 5),
}

INVOICE_COLUMNS = ["id", "vendor_id", "invoice_number", "invoice_date", "amount", "read_status", "relevant"]
FINDING_COLUMNS = [
    "id",
    "vendor_id",
    "invoice_id",
    "finding_type",
    "priority",
    "relevance",
    "description",
    "amount",
    "created_at",
]
DISPUTE_COLUMNS = ["id", "vendor_id", "invoice_id", "finding_type", "description", "amount", "disputed_at"]

EXPORT_COLUMNS = {
    "invoices": INVOICE_COLUMNS,
    "findings": FINDING_COLUMNS,
    "disputes": DISPUTE_COLUMNS,
}


def _error(status_code: int, error_code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error_code": error_code, "error_message": message})


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()


def _record_date(record: Record, key: str) -> Optional[date]:
    raw = str(record.get(key) or "")[:10]
    try:
        return _parse_date(raw)
    except ValueError:
        return None


def check_export_kind(kind: str) -> str:
    if kind not in EXPORT_KINDS:
        raise _error(404, "UNKNOWN_EXPORT_KIND", f"Unknown export kind {kind}")
    return kind


# User value: catches impossible date windows before users wait on an export.
def validate_export_params(kind: str, filters: ExportFilters) -> ExportValidation:
    errors: List[str] = []
    parsed = {}
    for key in ("start_date", "end_date"):
        try:
            parsed[key] = _parse_date(getattr(filters, key))
        except ValueError:
            errors.append(f"Invalid {key}: expected YYYY-MM-DD")
            parsed[key] = None

    if parsed["start_date"] and parsed["end_date"] and parsed["start_date"] > parsed["end_date"]:
        errors.append("Start date must be before end date")

    records, seconds = EXPORT_ESTIMATES[kind]
    return ExportValidation(
        export_type=kind,
        valid=not errors,
        errors=errors,
        estimated_records=records,
        estimated_duration_seconds=seconds,
    )


def _in_window(record: Record, key: str, start: Optional[date], end: Optional[date]) -> bool:
    if start is None and end is None:
        return True
    value = _record_date(record, key)
    if value is None:
        return False
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def select_rows(store: SandboxStore, kind: str, filters: ExportFilters) -> Tuple[List[str], List[Record]]:
    start = _parse_date(filters.start_date)
    end = _parse_date(filters.end_date)
    include_not_relevant = bool(getattr(filters, "include_not_relevant", False))

    if kind == "invoices":
        rows = [r for r in store.invoices.get_all() if _in_window(r, "invoice_date", start, end)]
        vendor_id = getattr(filters, "vendor_id", None)
        if vendor_id:
            rows = [r for r in rows if r.get("vendor_id") == vendor_id]
        read_status = getattr(filters, "read_status", None)
        if read_status is not None:
            rows = [r for r in rows if bool(r.get("read_status")) == read_status]
        if not include_not_relevant:
            rows = [r for r in rows if r.get("relevant", True)]
    elif kind == "findings":
        rows = [r for r in store.findings.get_all() if _in_window(r, "created_at", start, end)]
        for key in ("priority", "relevance", "finding_type"):
            wanted = getattr(filters, key, None)
            if wanted:
                rows = [r for r in rows if str(r.get(key) or "").lower() == wanted.lower()]
        if not include_not_relevant:
            rows = [r for r in rows if str(r.get("relevance") or "").lower() != "not_relevant"]
    else:
        rows = [r for r in store.findings.get_all() if r.get("disputed_at") and _in_window(r, "disputed_at", start, end)]
        finding_type = getattr(filters, "finding_type", None)
        if finding_type:
            rows = [r for r in rows if str(r.get("finding_type") or "").lower() == finding_type.lower()]

    rows.sort(key=lambda r: str(r.get("id")))
    return EXPORT_COLUMNS[kind], rows


def _progress_record(kind: str, total: int) -> Record:
    return {
        "kind": kind,
        "status": EXPORT_STATUS_PENDING,
        "progress": 0.0,
        "total_records": total,
        "processed_records": 0,
        "current_step": "Preparing export",
        "error": None,
    }


def start_export(store: SandboxStore, kind: str, filters: ExportFilters) -> Tuple[Record, List[str], List[Record]]:
    columns, rows = select_rows(store, kind, filters)
    record = store.exports.create(_progress_record(kind, len(rows)))
    log_stage(job_id=record["id"], stage="sandbox_export", event="started", export_kind=kind, total_records=len(rows))
    return record, columns, rows


def _csv_chunk(columns: List[str], rows: List[Record], *, header: bool) -> bytes:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    if header:
        writer.writeheader()
    for row in rows:
        writer.writerow({c: "" if row.get(c) is None else row.get(c) for c in columns})
    return buf.getvalue().encode("utf-8")


def stream_csv(
    store: SandboxStore,
    export_id: str,
    columns: List[str],
    rows: List[Record],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield CSV bytes chunk by chunk, updating the export's progress record."""
    total = len(rows)
    store.exports.update(export_id, {"status": EXPORT_STATUS_PROCESSING, "current_step": "Writing rows"})
    yield _csv_chunk(columns, [], header=True)

    processed = 0
    for offset in range(0, total, max(1, chunk_size)):
        current = store.exports.get_by_id(export_id) or {}
        if current.get("status") == EXPORT_STATUS_CANCELLED:
            log_stage(job_id=export_id, stage="sandbox_export", event="cancelled", processed_records=processed)
            return
        batch = rows[offset : offset + chunk_size]
        processed += len(batch)
        store.exports.update(
            export_id,
            {
                "processed_records": processed,
                "progress": round(processed / total * 100, 1) if total else 100.0,
            },
        )
        yield _csv_chunk(columns, batch, header=False)

    current = store.exports.get_by_id(export_id) or {}
    if current.get("status") == EXPORT_STATUS_CANCELLED:
        return
    store.exports.update(
        export_id,
        {
            "status": EXPORT_STATUS_COMPLETED,
            "progress": 100.0,
            "processed_records": processed,
            "current_step": "Export complete",
        },
    )
    log_stage(job_id=export_id, stage="sandbox_export", event="completed", processed_records=processed)


def progress_payload(record: Record) -> dict:
    progress = ExportProgress(
        export_id=record["id"],
        status=record["status"],
        progress=record.get("progress") or 0.0,
        total_records=record.get("total_records") or 0,
        processed_records=record.get("processed_records") or 0,
        current_step=record.get("current_step") or "",
        error=record.get("error"),
        created_at=record.get("created_at"),
        updated_at=record.get("updated_at"),
    )
    return progress.model_dump(exclude_none=True)


def get_export(store: SandboxStore, export_id: str) -> Record:
    record = store.exports.get_by_id(export_id)
    if record is None:
        raise _error(404, "EXPORT_NOT_FOUND", f"Export {export_id} not found")
    return record


def cancel_export(store: SandboxStore, export_id: str) -> dict:
    record = get_export(store, export_id)
    if record.get("status") in EXPORT_TERMINAL_STATUSES:
        return {
            "success": False,
            "message": f"Export already {record.get('status')}",
            "export_id": export_id,
        }
    store.exports.update(export_id, {"status": EXPORT_STATUS_CANCELLED, "current_step": "Cancelled"})
    log_stage(job_id=export_id, stage="sandbox_export", event="cancelled")
    return {"success": True, "message": "Export cancelled", "export_id": export_id}


def active_exports(store: SandboxStore) -> List[dict]:
    return [
        progress_payload(r)
        for r in store.exports.get_all()
        if r.get("status") in (EXPORT_STATUS_PENDING, EXPORT_STATUS_PROCESSING)
    ]
