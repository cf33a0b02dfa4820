# User value: This file validates every server payload before the contract workflow trusts it.
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContractExtractionData(CamelModel):
    # User value: carries the AI-extracted contract fields the user is asked to confirm.
    primary_vendor_name: str = ""
    dba_display_name: Optional[str] = None
    effective_date: str = ""
    renewal_end_date: Optional[str] = None
    category: Optional[str] = None
    contract_reconciliation_summary: str = ""


class ProcessingJob(CamelModel):
    # User value: shares live extraction status so users know when their contract is ready to review.
    id: str = Field(..., min_length=1)
    status: Literal["pending", "processing", "completed", "failed", "timeout"]
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    result: Optional[ContractExtractionData] = None
    error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="after")
    def _drop_fields_outside_their_status(self):
        if self.status != "completed":
            self.result = None
        if self.status != "failed":
            self.error = None
        return self


class UploadJobResponse(CamelModel):
    # User value: confirms the contract upload was accepted so polling can begin.
    job_id: str = Field(..., min_length=1)


class VendorCreationResult(CamelModel):
    # User value: identifies the vendor and contract created (or replaced) from the upload.
    vendor_id: str = Field(..., min_length=1)
    contract_id: str = Field(..., min_length=1)


class NameCheckResponse(CamelModel):
    is_unique: bool
    existing_vendor_id: Optional[str] = None


class Vendor(CamelModel):
    id: str
    name: str
    canonical_name: str = ""
    business_description: Optional[str] = None
    active: bool = True
    total_invoices: int = 0
    total_discrepancies: int = 0
    total_savings: float = 0.0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UploadValidation(BaseModel):
    # User value: tells users why a file was refused before anything is sent to the server.
    valid: bool
    reason: Optional[Literal["empty_selection", "unsupported_type", "too_large"]] = None
    message: Optional[str] = None


class ExportProgress(BaseModel):
    # User value: reports how far a long CSV export has progressed.
    export_id: str
    status: Literal["pending", "processing", "completed", "failed", "cancelled"]
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    total_records: int = Field(default=0, ge=0)
    processed_records: int = Field(default=0, ge=0)
    current_step: str = ""
    estimated_completion: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CancelExportResponse(BaseModel):
    success: bool
    message: str = ""
    export_id: Optional[str] = None


class ExportValidation(BaseModel):
    # User value: warns users about bad filters and long exports before paying for the export.
    export_type: str
    valid: bool
    errors: List[str] = Field(default_factory=list)
    estimated_records: int = Field(default=0, ge=0)
    estimated_duration_seconds: int = Field(default=0, ge=0)
