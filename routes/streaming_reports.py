# User value: This file serves the sandbox CSV export endpoints: validate, stream, progress, cancel.
# routes/streaming_reports.py
from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from auth import verify_token
from schemas.job_contract import EXPORT_ID_HEADER
from schemas.requests import EXPORT_FILTER_MODELS, ExportFilters
from services.repository import SandboxStore
from services.sandbox_exports import (
    DEFAULT_CHUNK_SIZE,
    active_exports,
    cancel_export,
    check_export_kind,
    get_export,
    progress_payload,
    start_export,
    stream_csv,
    validate_export_params,
)

router = APIRouter(prefix="/streaming-reports", tags=["streaming-reports"], dependencies=[Depends(verify_token)])


def get_store(request: Request) -> SandboxStore:
    return request.app.state.store


def _filters(kind: str, raw: dict) -> ExportFilters:
    try:
        return EXPORT_FILTER_MODELS[kind].model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "error_code": "INVALID_EXPORT_FILTERS",
                "error_message": "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
                ),
            },
        ) from exc


@router.get("/active")
def list_active(store: SandboxStore = Depends(get_store)):
    return active_exports(store)


@router.get("/progress/{export_id}")
def export_progress(export_id: str, store: SandboxStore = Depends(get_store)):
    return progress_payload(get_export(store, export_id))


@router.post("/cancel/{export_id}")
def cancel(export_id: str, store: SandboxStore = Depends(get_store)):
    return cancel_export(store, export_id)


@router.post("/validate/{kind}")
# User value: estimates size and flags bad filters before users start a long export.
def validate(kind: str, payload: dict | None = Body(default=None)):
    check_export_kind(kind)
    filters = _filters(kind, payload or {})
    return validate_export_params(kind, filters).model_dump()


@router.get("/{kind}.csv")
def export_csv(kind: str, request: Request, store: SandboxStore = Depends(get_store)):
    check_export_kind(kind)
    filters = _filters(kind, dict(request.query_params))

    validation = validate_export_params(kind, filters)
    if not validation.valid:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "INVALID_EXPORT_FILTERS", "error_message": "; ".join(validation.errors)},
        )

    record, columns, rows = start_export(store, kind, filters)
    chunk_size = filters.chunk_size or DEFAULT_CHUNK_SIZE
    filename = f"{kind}_export_{record['id']}.csv"
    return StreamingResponse(
        stream_csv(store, record["id"], columns, rows, chunk_size=chunk_size),
        media_type="text/csv",
        headers={
            EXPORT_ID_HEADER: record["id"],
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )
