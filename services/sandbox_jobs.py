# User value: This file simulates contract extraction jobs so the upload workflow can be tried end to end.
import logging
import os
import re
from datetime import date

from fastapi import HTTPException

from config import SANDBOX_JOB_POLLS_TO_COMPLETE
from schemas.job_contract import (
    JOB_STATUS_COMPLETED,
    JOB_STATUS_PENDING,
    JOB_STATUS_PROCESSING,
)
from schemas.requests import ContractConfirmRequest
from schemas.responses import ProcessingJob
from services.repository import Record, SandboxStore, find_vendor_by_name
from utils.stage_logging import log_stage
from utils.status_machine import is_terminal_job_status, transition_job

logger = logging.getLogger("sandbox.jobs")

JOB_KIND_CREATE = "create_vendor"
JOB_KIND_REPLACE = "replace_contract"

_NOISE_WORDS = {"contract", "agreement", "msa", "signed", "final", "copy", "scan"}


def _error(status_code: int, error_code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error_code": error_code, "error_message": message})


# User value: gives sandbox users a plausible vendor name taken from the file they uploaded.
def vendor_name_from_filename(filename: str) -> str:
    stem = os.path.splitext(os.path.basename(filename or ""))[0]
    words = [w for w in re.split(r"[^A-Za-z0-9]+", stem) if w]
    kept = [w for w in words if w.lower() not in _NOISE_WORDS and not w.isdigit()]
    name = " ".join(w if w.isupper() else w.capitalize() for w in (kept or words))
    return name or "Unnamed Vendor"


def _extraction_for(record: Record, *, today: date | None = None) -> dict:
    today = today or date.today()
    try:
        renewal = today.replace(year=today.year + 1)
    except ValueError:
        renewal = today.replace(year=today.year + 1, day=28)
    filename = str(record.get("filename") or "")
    return {
        "primary_vendor_name": vendor_name_from_filename(filename),
        "dba_display_name": None,
        "effective_date": today.isoformat(),
        "renewal_end_date": renewal.isoformat(),
        "category": None,
        "contract_reconciliation_summary": (
            f"Extracted from {filename}. Pricing terms will be reconciled against invoices once confirmed."
        ),
    }


def create_job(store: SandboxStore, *, filename: str, kind: str, vendor_id: str | None = None) -> Record:
    record: Record = {
        "filename": filename,
        "kind": kind,
        "vendor_id": vendor_id,
        "polls": 0,
        "progress": 0.0,
        "confirmed": False,
    }
    transition_job(record, target=JOB_STATUS_PENDING, context="sandbox_create")
    job = store.jobs.create(record)
    log_stage(job_id=job["id"], stage="sandbox_job", event="created", vendor_id=vendor_id, workflow=kind, filename=filename)
    return job


def read_job(store: SandboxStore, job_id: str, *, polls_to_complete: int | None = None) -> Record:
    """Return the job after advancing its simulated processing by one status read."""
    record = store.jobs.get_by_id(job_id)
    if record is None:
        raise _error(404, "JOB_NOT_FOUND", f"Job {job_id} not found")

    if is_terminal_job_status(record.get("status")):
        return record

    limit = SANDBOX_JOB_POLLS_TO_COMPLETE if polls_to_complete is None else polls_to_complete
    polls = int(record.get("polls") or 0) + 1
    record["polls"] = polls

    if polls > limit:
        transition_job(
            record,
            target=JOB_STATUS_COMPLETED,
            context="sandbox_read",
            progress=100.0,
            result=_extraction_for(record),
        )
        log_stage(job_id=job_id, stage="sandbox_job", event="completed", polls=polls)
    else:
        transition_job(
            record,
            target=JOB_STATUS_PROCESSING,
            context="sandbox_read",
            progress=round(min(95.0, polls / (limit + 1) * 100), 1),
        )

    return store.jobs.replace(record)


def job_payload(record: Record) -> dict:
    job = ProcessingJob.model_validate(
        {
            "id": record["id"],
            "status": record["status"],
            "progress": record.get("progress") or 0.0,
            "result": record.get("result"),
            "error": record.get("error"),
            "created_at": record.get("created_at"),
            "updated_at": record.get("updated_at"),
        }
    )
    return job.model_dump(by_alias=True, exclude_none=True)


def _consume_completed_job(store: SandboxStore, job_id: str, *, kind: str, vendor_id: str | None = None) -> Record:
    record = store.jobs.get_by_id(job_id)
    if record is None:
        raise _error(404, "JOB_NOT_FOUND", f"Job {job_id} not found")
    if record.get("kind") != kind or (vendor_id and record.get("vendor_id") != vendor_id):
        raise _error(409, "JOB_MISMATCH", f"Job {job_id} does not belong to this operation")
    if record.get("status") != JOB_STATUS_COMPLETED:
        raise _error(409, "JOB_NOT_COMPLETED", f"Job {job_id} is {record.get('status')}, not completed")
    if record.get("confirmed"):
        raise _error(409, "JOB_ALREADY_CONFIRMED", f"Job {job_id} was already confirmed")
    record["confirmed"] = True
    return store.jobs.replace(record)


def _contract_record(request: ContractConfirmRequest, *, vendor_id: str, job: Record) -> Record:
    return {
        "vendor_id": vendor_id,
        "job_id": job["id"],
        "filename": job.get("filename"),
        "effective_date": request.effective_date,
        "renewal_end_date": request.renewal_end_date,
        "category": request.category,
        "summary": (job.get("result") or {}).get("contract_reconciliation_summary", ""),
        "active": True,
    }


def confirm_vendor_creation(store: SandboxStore, request: ContractConfirmRequest) -> dict:
    existing = find_vendor_by_name(store, request.primary_vendor_name)
    if existing is not None:
        raise _error(
            409,
            "DUPLICATE_VENDOR_NAME",
            f"Vendor '{request.primary_vendor_name}' already exists",
        )

    job = _consume_completed_job(store, request.job_id, kind=JOB_KIND_CREATE)
    vendor = store.vendors.create(
        {
            "name": request.primary_vendor_name,
            "canonical_name": request.dba_display_name or request.primary_vendor_name,
            "business_description": request.category,
            "active": True,
        }
    )
    contract = store.contracts.create(_contract_record(request, vendor_id=vendor["id"], job=job))
    log_stage(job_id=job["id"], stage="sandbox_confirm", event="completed", vendor_id=vendor["id"], contract_id=contract["id"])
    return {"vendorId": vendor["id"], "contractId": contract["id"]}


def confirm_contract_replacement(store: SandboxStore, vendor_id: str, request: ContractConfirmRequest) -> dict:
    if store.vendors.get_by_id(vendor_id) is None:
        raise _error(404, "VENDOR_NOT_FOUND", f"Vendor {vendor_id} not found")

    job = _consume_completed_job(store, request.job_id, kind=JOB_KIND_REPLACE, vendor_id=vendor_id)
    for contract in store.contracts.get_all():
        if contract.get("vendor_id") == vendor_id and contract.get("active"):
            store.contracts.update(contract["id"], {"active": False})
    contract = store.contracts.create(_contract_record(request, vendor_id=vendor_id, job=job))
    log_stage(job_id=job["id"], stage="sandbox_replace", event="completed", vendor_id=vendor_id, contract_id=contract["id"])
    return {"vendorId": vendor_id, "contractId": contract["id"]}
