import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("drift.stage")


def _norm(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return value
    return str(value)


def log_stage(
    *,
    job_id: str,
    stage: str,
    event: str,
    vendor_id: str | None = None,
    workflow: str | None = None,
    request_id: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "job_id": job_id,
        "stage": stage,
        "event": event.upper(),
    }

    if vendor_id:
        payload["vendor_id"] = vendor_id
    if workflow:
        payload["workflow"] = workflow
    if request_id:
        payload["request_id"] = request_id
    if error:
        payload["error"] = error

    for key, value in extra.items():
        norm = _norm(value)
        if norm is not None:
            payload[key] = norm

    msg = json.dumps(payload, ensure_ascii=False)
    if error or payload["event"] == "FAILED":
        logger.error("stage_event %s", msg)
    elif payload["event"] in {"TIMED_OUT", "REJECTED", "DISCARDED"}:
        logger.warning("stage_event %s", msg)
    else:
        logger.info("stage_event %s", msg)
