# User value: This file gives every workflow failure a stable code and a message users can read.
from typing import Any, Dict, Optional


class DriftError(Exception):
    error_code = "DRIFT_ERROR"

    def __init__(self, message: str, *, error_code: Optional[str] = None, detail: Any = None):
        super().__init__(message)
        self.error_message = message
        if error_code:
            self.error_code = error_code
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.error_code, "error_message": self.error_message}


class ApiError(DriftError):
    """Transport-level failure talking to the DRIFT backend."""

    error_code = "API_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 0,
        request_id: str = "",
        error_code: Optional[str] = None,
        detail: Any = None,
    ):
        super().__init__(message, error_code=error_code, detail=detail)
        self.status_code = status_code
        self.request_id = request_id


class ApiTimeoutError(ApiError):
    error_code = "REQUEST_TIMEOUT"


class ApiNetworkError(ApiError):
    error_code = "NETWORK_ERROR"


class ApiHttpError(ApiError):
    error_code = "HTTP_ERROR"


class ApiPayloadError(ApiError):
    error_code = "INVALID_RESPONSE_PAYLOAD"


class ReviewValidationError(DriftError):
    """Raised when reviewed contract fields cannot be submitted."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, errors: Optional[Dict[str, str]] = None, error_code: Optional[str] = None):
        super().__init__(message, error_code=error_code, detail=errors)
        self.errors = dict(errors or {})


class ReviewSubmissionError(DriftError):
    error_code = "SUBMISSION_FAILED"


class ExportError(DriftError):
    error_code = "EXPORT_FAILED"


class ExportValidationError(ExportError):
    error_code = "EXPORT_VALIDATION_FAILED"

    def __init__(self, message: str, *, errors: Optional[list] = None):
        super().__init__(message, detail=errors)
        self.errors = list(errors or [])


class ExportCancelledError(ExportError):
    error_code = "EXPORT_CANCELLED"
