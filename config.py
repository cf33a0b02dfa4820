import os
from dotenv import load_dotenv

load_dotenv()

DRIFT_API_BASE_URL = os.environ.get("DRIFT_API_BASE_URL", "http://localhost:8000/api")
DRIFT_API_TOKEN = os.environ.get("DRIFT_API_TOKEN", "")

DRIFT_REQUEST_TIMEOUT_SEC = float(os.environ.get("DRIFT_REQUEST_TIMEOUT_SEC", "30"))
DRIFT_MAX_RETRIES = int(os.environ.get("DRIFT_MAX_RETRIES", "3"))
DRIFT_RETRY_BASE_SEC = float(os.environ.get("DRIFT_RETRY_BASE_SEC", "1"))
DRIFT_RETRY_MAX_DELAY_SEC = float(os.environ.get("DRIFT_RETRY_MAX_DELAY_SEC", "10"))

JOB_POLL_INTERVAL_SEC = float(os.environ.get("JOB_POLL_INTERVAL_SEC", "2"))
JOB_TIMEOUT_SEC = float(os.environ.get("JOB_TIMEOUT_SEC", "60"))
JOB_MIN_PROCESSING_SEC = float(os.environ.get("JOB_MIN_PROCESSING_SEC", "8"))

NAME_CHECK_DEBOUNCE_SEC = float(os.environ.get("NAME_CHECK_DEBOUNCE_SEC", "0.5"))
MAX_UPLOAD_FILE_SIZE_MB = int(os.environ.get("MAX_UPLOAD_FILE_SIZE_MB", "10"))
MAX_UPLOAD_FILE_SIZE_BYTES = MAX_UPLOAD_FILE_SIZE_MB * 1024 * 1024

EXPORT_POLL_INTERVAL_SEC = float(os.environ.get("EXPORT_POLL_INTERVAL_SEC", "1"))

SANDBOX_JOB_POLLS_TO_COMPLETE = int(os.environ.get("SANDBOX_JOB_POLLS_TO_COMPLETE", "2"))
SANDBOX_API_TOKEN = os.environ.get("SANDBOX_API_TOKEN", "")
