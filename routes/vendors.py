# User value: This file exposes the sandbox vendor and contract endpoints the upload workflow calls.
# routes/vendors.py
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from auth import verify_token
from schemas.requests import ContractConfirmRequest, NameCheckRequest, VendorUpdateRequest
from schemas.responses import NameCheckResponse, UploadJobResponse, Vendor, VendorCreationResult
from services.repository import SandboxStore, find_vendor_by_name
from services.sandbox_jobs import (
    JOB_KIND_CREATE,
    JOB_KIND_REPLACE,
    confirm_contract_replacement,
    confirm_vendor_creation,
    create_job,
)
from services.upload_gate import UploadedFile, validate_upload
from utils.stage_logging import log_stage

router = APIRouter(prefix="/vendors", tags=["vendors"], dependencies=[Depends(verify_token)])
logger = logging.getLogger("sandbox.vendors")

_REJECTION_CODES = {
    "empty_selection": "EMPTY_FILE",
    "unsupported_type": "UNSUPPORTED_FILE_TYPE",
    "too_large": "FILE_TOO_LARGE",
}


def get_store(request: Request) -> SandboxStore:
    return request.app.state.store


def _vendor_or_404(store: SandboxStore, vendor_id: str) -> dict:
    vendor = store.vendors.get_by_id(vendor_id)
    if vendor is None:
        raise HTTPException(
            status_code=404,
            detail={"error_code": "VENDOR_NOT_FOUND", "error_message": f"Vendor {vendor_id} not found"},
        )
    return vendor


def _vendor_body(record: dict) -> dict:
    return Vendor.model_validate(record).model_dump(by_alias=True, exclude_none=True)


# User value: applies the same file rules as the client so bad uploads are refused on both sides.
async def _accept_upload(file: UploadFile) -> UploadedFile:
    data = await file.read()
    uploaded = UploadedFile.from_bytes(file.filename or "", data, file.content_type or "")
    validation = validate_upload(uploaded)
    if not validation.valid:
        raise HTTPException(
            status_code=400,
            detail={"error_code": _REJECTION_CODES[validation.reason], "error_message": validation.message},
        )
    return uploaded


@router.get("")
def list_vendors(store: SandboxStore = Depends(get_store)):
    return [_vendor_body(v) for v in store.vendors.get_all()]


@router.post("/check-name")
# User value: tells users right away whether a vendor with this name already exists.
def check_name(payload: NameCheckRequest, store: SandboxStore = Depends(get_store)):
    existing = find_vendor_by_name(store, payload.name)
    body = NameCheckResponse(is_unique=existing is None, existing_vendor_id=existing["id"] if existing else None)
    return body.model_dump(by_alias=True, exclude_none=True)


@router.post("/create-from-contract/upload")
async def upload_contract_for_creation(file: UploadFile = File(...), store: SandboxStore = Depends(get_store)):
    uploaded = await _accept_upload(file)
    job = create_job(store, filename=uploaded.name, kind=JOB_KIND_CREATE)
    return UploadJobResponse(job_id=job["id"]).model_dump(by_alias=True)


@router.post("/create-from-contract/confirm")
def confirm_creation(payload: ContractConfirmRequest, store: SandboxStore = Depends(get_store)):
    result = confirm_vendor_creation(store, payload)
    return VendorCreationResult.model_validate(result).model_dump(by_alias=True)


@router.get("/{vendor_id}")
def get_vendor(vendor_id: str, store: SandboxStore = Depends(get_store)):
    return _vendor_body(_vendor_or_404(store, vendor_id))


@router.patch("/{vendor_id}")
# User value: lets users rename a vendor without colliding with another vendor's name.
def update_vendor(vendor_id: str, payload: VendorUpdateRequest, store: SandboxStore = Depends(get_store)):
    _vendor_or_404(store, vendor_id)
    changes = payload.model_dump(exclude_none=True)

    if "name" in changes:
        clash = find_vendor_by_name(store, changes["name"])
        if clash is not None and clash["id"] != vendor_id:
            raise HTTPException(
                status_code=409,
                detail={
                    "error_code": "DUPLICATE_VENDOR_NAME",
                    "error_message": f"Vendor '{changes['name']}' already exists",
                },
            )

    updated = store.vendors.update(vendor_id, changes)
    log_stage(job_id="vendor-update", stage="sandbox_vendor", event="updated", vendor_id=vendor_id, fields=",".join(sorted(changes)))
    return _vendor_body(updated)


@router.post("/{vendor_id}/replace-contract")
async def replace_contract(vendor_id: str, file: UploadFile = File(...), store: SandboxStore = Depends(get_store)):
    _vendor_or_404(store, vendor_id)
    uploaded = await _accept_upload(file)
    job = create_job(store, filename=uploaded.name, kind=JOB_KIND_REPLACE, vendor_id=vendor_id)
    return UploadJobResponse(job_id=job["id"]).model_dump(by_alias=True)


@router.post("/{vendor_id}/replace-contract/confirm")
def confirm_replacement(vendor_id: str, payload: ContractConfirmRequest, store: SandboxStore = Depends(get_store)):
    result = confirm_contract_replacement(store, vendor_id, payload)
    return VendorCreationResult.model_validate(result).model_dump(by_alias=True)
