# User value: This file keeps job and poller states moving only along legal paths.
import logging
from typing import Optional

from schemas.job_contract import (
    JOB_STATUS_PENDING,
    JOB_STATUS_PROCESSING,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_TIMEOUT,
    POLLER_IDLE,
    POLLER_SUBMITTING,
    POLLER_POLLING,
    POLLER_COMPLETED,
    POLLER_FAILED,
    POLLER_TIMED_OUT,
)

logger = logging.getLogger("drift.status_machine")

_JOB_TERMINAL = {JOB_STATUS_COMPLETED, JOB_STATUS_FAILED, JOB_STATUS_TIMEOUT}

_JOB_ALLOWED = {
    None: {
        JOB_STATUS_PENDING,
        JOB_STATUS_PROCESSING,
    },
    JOB_STATUS_PENDING: {
        JOB_STATUS_PENDING,
        JOB_STATUS_PROCESSING,
        JOB_STATUS_COMPLETED,
        JOB_STATUS_FAILED,
        JOB_STATUS_TIMEOUT,
    },
    JOB_STATUS_PROCESSING: {
        JOB_STATUS_PROCESSING,
        JOB_STATUS_COMPLETED,
        JOB_STATUS_FAILED,
        JOB_STATUS_TIMEOUT,
    },
    JOB_STATUS_COMPLETED: {JOB_STATUS_COMPLETED},
    JOB_STATUS_FAILED: {JOB_STATUS_FAILED},
    JOB_STATUS_TIMEOUT: {JOB_STATUS_TIMEOUT},
}

# Terminal poller states are left only by a fresh submit.
_POLLER_ALLOWED = {
    POLLER_IDLE: {POLLER_SUBMITTING},
    POLLER_SUBMITTING: {POLLER_SUBMITTING, POLLER_POLLING, POLLER_FAILED, POLLER_IDLE},
    POLLER_POLLING: {POLLER_POLLING, POLLER_COMPLETED, POLLER_FAILED, POLLER_TIMED_OUT, POLLER_IDLE},
    POLLER_COMPLETED: {POLLER_SUBMITTING},
    POLLER_FAILED: {POLLER_SUBMITTING},
    POLLER_TIMED_OUT: {POLLER_SUBMITTING},
}


def _norm(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    s = str(status).strip().lower()
    return s or None


def is_terminal_job_status(status: Optional[str]) -> bool:
    return _norm(status) in _JOB_TERMINAL


def is_allowed_job_transition(current: Optional[str], target: Optional[str]) -> bool:
    target_n = _norm(target)
    if not target_n:
        return True
    current_n = _norm(current)
    allowed = _JOB_ALLOWED.get(current_n, _JOB_ALLOWED[None])
    return target_n in allowed


def is_allowed_poller_transition(current: str, target: str) -> bool:
    return _norm(target) in _POLLER_ALLOWED.get(_norm(current) or POLLER_IDLE, set())


def check_poller_transition(current: str, target: str, *, context: str, job_id: str = "") -> bool:
    if is_allowed_poller_transition(current, target):
        return True
    logger.warning(
        "poller_transition_blocked context=%s job_id=%s current=%s target=%s",
        context,
        job_id,
        current,
        target,
    )
    return False


def transition_job(record: dict, *, target: str, context: str, **fields) -> bool:
    """Apply ``target`` status (plus ``fields``) to a job record dict in place.

    Returns False and leaves the record untouched when the move is illegal.
    Re-applying a terminal status is accepted and logged as idempotent.
    """
    current = _norm(record.get("status"))
    target_n = _norm(target)

    if not is_allowed_job_transition(current, target_n):
        logger.warning(
            "status_transition_blocked context=%s job_id=%s current=%s target=%s",
            context,
            record.get("id", ""),
            current,
            target_n,
        )
        return False

    record.update(fields)
    record["status"] = target_n

    if current and current in _JOB_TERMINAL and current == target_n:
        logger.info(
            "status_transition_idempotent_terminal context=%s job_id=%s status=%s",
            context,
            record.get("id", ""),
            target_n,
        )

    return True
