# User value: This file lets users confirm or correct the AI-extracted contract fields before a vendor is saved.
import logging
from dataclasses import asdict, dataclass, fields
from typing import Dict, Optional

from schemas.job_contract import NAME_CHECK_CHECKING, NAME_CHECK_DUPLICATE
from schemas.requests import ContractConfirmRequest, VendorUpdateRequest
from schemas.responses import ContractExtractionData, VendorCreationResult
from services.errors import ApiError, ReviewSubmissionError, ReviewValidationError
from services.field_validation import validate_date, validate_vendor_name
from services.name_check import NameUniquenessChecker
from utils.stage_logging import log_stage

logger = logging.getLogger("drift.review")

MODE_CREATE = "create"
MODE_REPLACE = "replace"
REVIEW_MODES = (MODE_CREATE, MODE_REPLACE)

NAME_CHECK_PENDING_MESSAGE = "Checking vendor name availability..."


@dataclass
class ExtractionReviewState:
    primary_vendor_name: str = ""
    dba_display_name: str = ""
    effective_date: str = ""
    renewal_end_date: str = ""
    category: str = ""

    @classmethod
    def from_extraction(cls, data: ContractExtractionData) -> "ExtractionReviewState":
        return cls(
            primary_vendor_name=data.primary_vendor_name or "",
            dba_display_name=data.dba_display_name or "",
            effective_date=data.effective_date or "",
            renewal_end_date=data.renewal_end_date or "",
            category=data.category or "",
        )


EDITABLE_FIELDS = tuple(f.name for f in fields(ExtractionReviewState))


# User value: builds the duplicate warning users see so they know which vendor already uses the name.
def duplicate_name_message(name: str, existing_vendor_id: Optional[str] = None) -> str:
    message = (
        f"Vendor '{name}' already exists. Please choose a different primary name "
        "or update the existing vendor's contract."
    )
    if existing_vendor_id:
        message += f" (existing vendor id: {existing_vendor_id})"
    return message


def _optional(value: str) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


class ExtractionReviewForm:
    """Editable review of one completed extraction.

    The reconciliation summary is kept outside the editable state and is
    exposed read-only. Submitting creates a vendor (``create`` mode) or
    replaces the contract of ``vendor_id`` (``replace`` mode).
    """

    def __init__(
        self,
        client,
        *,
        job_id: str,
        extraction: ContractExtractionData,
        mode: str = MODE_CREATE,
        vendor_id: Optional[str] = None,
        name_checker: Optional[NameUniquenessChecker] = None,
    ):
        if mode not in REVIEW_MODES:
            raise ValueError(f"Unknown review mode {mode!r}")
        if mode == MODE_REPLACE and not vendor_id:
            raise ValueError("vendor_id is required to replace a contract")

        self._client = client
        self.job_id = job_id
        self.mode = mode
        self.vendor_id = vendor_id
        self.state = ExtractionReviewState.from_extraction(extraction)
        self._summary = extraction.contract_reconciliation_summary or ""
        self.name_check = name_checker or NameUniquenessChecker(
            client.check_vendor_name,
            ignore_vendor_id=vendor_id if mode == MODE_REPLACE else None,
        )

        self.submitting = False
        self.submit_error: Optional[str] = None
        self.result: Optional[VendorCreationResult] = None

    @property
    def contract_reconciliation_summary(self) -> str:
        return self._summary

    def start(self) -> None:
        """Kick off the uniqueness check for the pre-filled name."""
        self.name_check.update(self.state.primary_vendor_name)

    def set_field(self, field: str, value: str) -> None:
        if field not in EDITABLE_FIELDS:
            raise KeyError(f"{field} is not an editable review field")
        setattr(self.state, field, "" if value is None else str(value))
        self.submit_error = None
        if field == "primary_vendor_name":
            self.name_check.update(self.state.primary_vendor_name)

    def values(self) -> Dict[str, str]:
        return asdict(self.state)

    def validate(self) -> Dict[str, str]:
        """Field-level errors, keyed by field name."""
        errors: Dict[str, str] = {}

        name = validate_vendor_name(self.state.primary_vendor_name)
        if not name.valid:
            errors["primary_vendor_name"] = name.error

        effective = validate_date(self.state.effective_date, required=True)
        if not effective.valid:
            errors["effective_date"] = (
                "Effective date is required" if not self.state.effective_date.strip() else effective.error
            )

        renewal = validate_date(self.state.renewal_end_date)
        if not renewal.valid:
            errors["renewal_end_date"] = renewal.error

        return errors

    @property
    def name_error(self) -> Optional[str]:
        if self.name_check.status == NAME_CHECK_DUPLICATE:
            return duplicate_name_message(self.name_check.name, self.name_check.existing_vendor_id)
        return None

    def blocking_errors(self) -> Dict[str, str]:
        errors = self.validate()
        if "primary_vendor_name" not in errors:
            if self.name_check.status == NAME_CHECK_CHECKING:
                errors["primary_vendor_name"] = NAME_CHECK_PENDING_MESSAGE
            elif self.name_check.status == NAME_CHECK_DUPLICATE:
                errors["primary_vendor_name"] = self.name_error
        return errors

    @property
    def can_submit(self) -> bool:
        return not self.submitting and not self.blocking_errors()

    def build_request(self) -> ContractConfirmRequest:
        renewal = validate_date(self.state.renewal_end_date)
        return ContractConfirmRequest(
            primary_vendor_name=self.state.primary_vendor_name.strip(),
            dba_display_name=_optional(self.state.dba_display_name),
            effective_date=validate_date(self.state.effective_date, required=True).formatted,
            renewal_end_date=renewal.formatted,
            category=_optional(self.state.category),
            job_id=self.job_id,
        )

    def _raise_if_blocked(self) -> None:
        if self.submitting:
            raise ReviewValidationError("Submission already in progress", error_code="SUBMISSION_IN_PROGRESS")

        errors = self.blocking_errors()
        if not errors:
            return

        if self.name_check.status == NAME_CHECK_DUPLICATE and "primary_vendor_name" in errors:
            error_code = "DUPLICATE_NAME"
        elif self.name_check.status == NAME_CHECK_CHECKING and "primary_vendor_name" in errors:
            error_code = "NAME_CHECK_PENDING"
        else:
            error_code = "VALIDATION_ERROR"
        first = next(iter(errors.values()))
        raise ReviewValidationError(first, errors=errors, error_code=error_code)

    async def submit(self) -> VendorCreationResult:
        self._raise_if_blocked()
        request = self.build_request()

        self.submitting = True
        self.submit_error = None
        log_stage(
            job_id=self.job_id,
            stage="confirm",
            event="started",
            vendor_id=self.vendor_id,
            workflow=self.mode,
        )
        try:
            if self.mode == MODE_CREATE:
                result = await self._client.create_vendor_from_contract(request)
            else:
                await self._client.update_vendor(
                    self.vendor_id,
                    VendorUpdateRequest(
                        name=request.primary_vendor_name,
                        canonical_name=request.dba_display_name,
                        business_description=request.category,
                    ),
                )
                result = await self._client.confirm_contract_replacement(self.vendor_id, request)
        except ApiError as exc:
            self.submit_error = exc.error_message
            log_stage(
                job_id=self.job_id,
                stage="confirm",
                event="failed",
                vendor_id=self.vendor_id,
                workflow=self.mode,
                error=exc.error_message,
                error_code=exc.error_code,
                request_id=exc.request_id,
            )
            raise ReviewSubmissionError(exc.error_message, error_code=exc.error_code, detail=exc.detail) from exc
        finally:
            self.submitting = False

        self.result = result
        log_stage(
            job_id=self.job_id,
            stage="confirm",
            event="completed",
            vendor_id=result.vendor_id,
            workflow=self.mode,
            contract_id=result.contract_id,
        )
        return result

    def close(self) -> None:
        self.name_check.close()
