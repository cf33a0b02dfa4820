import logging
import os
from typing import List

logger = logging.getLogger("drift.startup")

_BOOL_VALUES = {"1", "0", "true", "false", "yes", "no", "on", "off"}


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _validate_base_url(value: str | None, key: str, errors: List[str]) -> None:
    if _is_blank(value):
        errors.append(f"{key} is required")
        return
    if not (value.startswith("http://") or value.startswith("https://")):
        errors.append(f"{key} must start with http:// or https://")


def _validate_positive_number(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    try:
        value = float(raw)
    except ValueError:
        errors.append(f"{key} must be a number: {raw}")
        return
    if value <= 0:
        errors.append(f"{key} must be greater than 0")


def _validate_bool_flag_env(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    if str(raw).strip().lower() not in _BOOL_VALUES:
        errors.append(f"{key} must be one of {sorted(_BOOL_VALUES)}")


def _validate_cors_allow_origins(value: str | None, errors: List[str]) -> None:
    if _is_blank(value):
        return

    origins = [x.strip() for x in str(value).split(",") if x.strip()]
    for origin in origins:
        if origin == "*":
            errors.append("CORS_ALLOW_ORIGINS must not contain '*' in strict allowlist mode")
            continue
        if not (origin.startswith("http://") or origin.startswith("https://")):
            errors.append(f"CORS origin must start with http:// or https://: {origin}")


def _raise_or_log(errors: List[str], warnings: List[str], checked: List[str]) -> None:
    if errors:
        for err in errors:
            logger.error("startup_env_invalid %s", err)
        raise RuntimeError("Startup env validation failed: " + "; ".join(errors))

    for warning in warnings:
        logger.warning("startup_env_warning %s", warning)

    logger.info("startup_env_validated keys=%s", checked)


def validate_client_env() -> None:
    errors: List[str] = []
    warnings: List[str] = []

    _validate_base_url(os.getenv("DRIFT_API_BASE_URL", "http://localhost:8000/api"), "DRIFT_API_BASE_URL", errors)

    numeric = [
        "DRIFT_REQUEST_TIMEOUT_SEC",
        "DRIFT_RETRY_BASE_SEC",
        "DRIFT_RETRY_MAX_DELAY_SEC",
        "JOB_POLL_INTERVAL_SEC",
        "JOB_TIMEOUT_SEC",
        "JOB_MIN_PROCESSING_SEC",
        "NAME_CHECK_DEBOUNCE_SEC",
        "MAX_UPLOAD_FILE_SIZE_MB",
        "EXPORT_POLL_INTERVAL_SEC",
    ]
    for key in numeric:
        _validate_positive_number(key, errors)

    raw_retries = os.getenv("DRIFT_MAX_RETRIES")
    if not _is_blank(raw_retries) and not str(raw_retries).strip().isdigit():
        errors.append("DRIFT_MAX_RETRIES must be a non-negative integer")

    for key in ("FEATURE_EXPORT_PREFLIGHT", "FEATURE_SANDBOX_BACKEND"):
        _validate_bool_flag_env(key, errors)

    if _is_blank(os.getenv("DRIFT_API_TOKEN")):
        warnings.append("DRIFT_API_TOKEN is not set; requests are sent without an Authorization header")

    _raise_or_log(errors, warnings, ["DRIFT_API_BASE_URL", *numeric])


def validate_sandbox_env() -> None:
    errors: List[str] = []
    warnings: List[str] = []

    raw_polls = os.getenv("SANDBOX_JOB_POLLS_TO_COMPLETE")
    if not _is_blank(raw_polls) and not str(raw_polls).strip().isdigit():
        errors.append("SANDBOX_JOB_POLLS_TO_COMPLETE must be a non-negative integer")

    _validate_cors_allow_origins(os.getenv("CORS_ALLOW_ORIGINS"), errors)

    if _is_blank(os.getenv("SANDBOX_API_TOKEN")):
        warnings.append("SANDBOX_API_TOKEN is not set; sandbox accepts unauthenticated requests")

    _raise_or_log(errors, warnings, ["SANDBOX_JOB_POLLS_TO_COMPLETE", "CORS_ALLOW_ORIGINS", "SANDBOX_API_TOKEN"])
