# User value: This file defines the exact payloads the contract workflow sends to the DRIFT backend.
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ContractConfirmRequest(BaseModel):
    # User value: materializes the reviewed contract fields into a vendor/contract on the server.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    primary_vendor_name: str = Field(..., min_length=2, max_length=255)
    dba_display_name: Optional[str] = None
    effective_date: str = Field(..., min_length=1)
    renewal_end_date: Optional[str] = None
    category: Optional[str] = None
    job_id: str = Field(..., min_length=1)


class VendorUpdateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1)
    canonical_name: Optional[str] = None
    business_description: Optional[str] = None
    active: Optional[bool] = None


class NameCheckRequest(BaseModel):
    name: str = Field(..., min_length=1)


class ExportFilters(BaseModel):
    # User value: narrows CSV exports to the date window the user asked for.
    model_config = ConfigDict(extra="forbid")

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    chunk_size: Optional[int] = Field(default=None, ge=1)

    def to_query_params(self) -> dict:
        params = {}
        for key, value in self.model_dump(exclude_none=True).items():
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            else:
                params[key] = str(value)
        return params


class InvoiceExportFilters(ExportFilters):
    vendor_id: Optional[str] = None
    read_status: Optional[bool] = None
    include_not_relevant: Optional[bool] = None


class FindingsExportFilters(ExportFilters):
    priority: Optional[str] = None
    relevance: Optional[str] = None
    finding_type: Optional[str] = None
    include_not_relevant: Optional[bool] = None


class DisputesExportFilters(ExportFilters):
    finding_type: Optional[str] = None


EXPORT_FILTER_MODELS = {
    "invoices": InvoiceExportFilters,
    "findings": FindingsExportFilters,
    "disputes": DisputesExportFilters,
}
