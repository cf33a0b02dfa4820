# User value: This file keeps the contract-processing job vocabulary identical on both sides of the wire.
CONTRACT_VERSION = "2024-06-drift-contract-workflow"

# Server-side processing job statuses (GET /jobs/{jobId}).
JOB_STATUS_PENDING = "pending"
JOB_STATUS_PROCESSING = "processing"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"
JOB_STATUS_TIMEOUT = "timeout"

JOB_STATUSES = (
    JOB_STATUS_PENDING,
    JOB_STATUS_PROCESSING,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_TIMEOUT,
)

JOB_ACTIVE_STATUSES = (
    JOB_STATUS_PENDING,
    JOB_STATUS_PROCESSING,
)

# Client-side poller states.
POLLER_IDLE = "idle"
POLLER_SUBMITTING = "submitting"
POLLER_POLLING = "polling"
POLLER_COMPLETED = "completed"
POLLER_FAILED = "failed"
POLLER_TIMED_OUT = "timed_out"

POLLER_STATES = (
    POLLER_IDLE,
    POLLER_SUBMITTING,
    POLLER_POLLING,
    POLLER_COMPLETED,
    POLLER_FAILED,
    POLLER_TIMED_OUT,
)

POLLER_TERMINAL_STATES = (
    POLLER_COMPLETED,
    POLLER_FAILED,
    POLLER_TIMED_OUT,
)

# Streaming export statuses (GET /streaming-reports/progress/{exportId}).
EXPORT_STATUS_PENDING = "pending"
EXPORT_STATUS_PROCESSING = "processing"
EXPORT_STATUS_COMPLETED = "completed"
EXPORT_STATUS_FAILED = "failed"
EXPORT_STATUS_CANCELLED = "cancelled"

EXPORT_STATUSES = (
    EXPORT_STATUS_PENDING,
    EXPORT_STATUS_PROCESSING,
    EXPORT_STATUS_COMPLETED,
    EXPORT_STATUS_FAILED,
    EXPORT_STATUS_CANCELLED,
)

EXPORT_TERMINAL_STATUSES = (
    EXPORT_STATUS_COMPLETED,
    EXPORT_STATUS_FAILED,
    EXPORT_STATUS_CANCELLED,
)

EXPORT_KINDS = ("invoices", "findings", "disputes")

EXPORT_ID_HEADER = "X-Export-ID"

# Upload gate rejection reasons.
REJECT_EMPTY_SELECTION = "empty_selection"
REJECT_UNSUPPORTED_TYPE = "unsupported_type"
REJECT_TOO_LARGE = "too_large"

# Name uniqueness check states.
NAME_CHECK_IDLE = "idle"
NAME_CHECK_CHECKING = "checking"
NAME_CHECK_UNIQUE = "unique"
NAME_CHECK_DUPLICATE = "duplicate"

MIME_PDF = "application/pdf"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"

DEFAULT_ALLOWED_MIME_TYPES = (MIME_PDF, MIME_DOCX, MIME_PNG, MIME_JPEG)

EXTENSION_MIME_TYPES = {
    ".pdf": MIME_PDF,
    ".docx": MIME_DOCX,
    ".png": MIME_PNG,
    ".jpg": MIME_JPEG,
    ".jpeg": MIME_JPEG,
}

MIME_DISPLAY_EXTENSIONS = {
    MIME_PDF: ".pdf",
    MIME_DOCX: ".docx",
    MIME_PNG: ".png",
    MIME_JPEG: ".jpg/.jpeg",
}

MESSAGE_PROCESSING_TIMEOUT = (
    "Processing timeout. Please try uploading a clearer document or contact support."
)
MESSAGE_PROCESSING_FAILED = "Processing failed"
MESSAGE_MISSING_RESULT = "Processing completed without extraction result"
