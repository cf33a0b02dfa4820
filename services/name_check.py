# User value: This file warns users about an existing vendor with the same name while they type.
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from config import NAME_CHECK_DEBOUNCE_SEC
from schemas.job_contract import (
    NAME_CHECK_CHECKING,
    NAME_CHECK_DUPLICATE,
    NAME_CHECK_IDLE,
    NAME_CHECK_UNIQUE,
)
from schemas.responses import NameCheckResponse
from services.errors import DriftError
from services.field_validation import VENDOR_NAME_MIN_LENGTH
from utils.stage_logging import log_stage

logger = logging.getLogger("drift.name_check")

CheckNameFn = Callable[[str], Awaitable[NameCheckResponse]]


class NameUniquenessChecker:
    """Debounced vendor-name uniqueness check.

    Every ``update()`` supersedes the previous one. A check still waiting out
    its debounce window is cancelled; a check already on the wire is left to
    finish but its answer is dropped unless it belongs to the latest name.
    """

    def __init__(
        self,
        check_name: CheckNameFn,
        *,
        debounce_sec: float = NAME_CHECK_DEBOUNCE_SEC,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        ignore_vendor_id: Optional[str] = None,
        on_change: Callable[["NameUniquenessChecker"], None] | None = None,
    ):
        self._check_name = check_name
        self.debounce_sec = debounce_sec
        self._sleep = sleep or asyncio.sleep
        self.ignore_vendor_id = ignore_vendor_id
        self._on_change = on_change

        self.status = NAME_CHECK_IDLE
        self.name = ""
        self.existing_vendor_id: Optional[str] = None
        self.error: Optional[str] = None
        self.generation = 0
        self.requests_sent = 0

        self._debouncing: Optional[asyncio.Task] = None
        self._latest: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _reset(self, status: str) -> None:
        self.status = status
        self.existing_vendor_id = None
        self.error = None

    def update(self, name: str) -> None:
        """Register a new name value; must be called from a running event loop."""
        self.generation += 1
        self.name = str(name or "").strip()

        if self._debouncing is not None and not self._debouncing.done():
            self._debouncing.cancel()
        self._debouncing = None

        if len(self.name) < VENDOR_NAME_MIN_LENGTH:
            self._latest = None
            self._reset(NAME_CHECK_IDLE)
            self._notify()
            return

        self._reset(NAME_CHECK_CHECKING)
        task = asyncio.create_task(self._run(self.generation, self.name))
        self._debouncing = task
        self._latest = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._notify()

    async def _run(self, generation: int, name: str) -> None:
        await self._sleep(self.debounce_sec)
        if generation != self.generation:
            return
        if self._debouncing is asyncio.current_task():
            self._debouncing = None

        self.requests_sent += 1
        try:
            response = await self._check_name(name)
        except DriftError as exc:
            if generation != self.generation:
                return
            logger.warning("name_check_failed name=%s error_code=%s error=%s", name, exc.error_code, exc.error_message)
            self._reset(NAME_CHECK_IDLE)
            self.error = exc.error_message
            self._notify()
            return

        if generation != self.generation:
            log_stage(
                job_id="name-check",
                stage="name_check",
                event="discarded",
                name=name,
                generation=generation,
                current_generation=self.generation,
            )
            return

        same_vendor = bool(self.ignore_vendor_id) and response.existing_vendor_id == self.ignore_vendor_id
        if response.is_unique or same_vendor:
            self._reset(NAME_CHECK_UNIQUE)
        else:
            self._reset(NAME_CHECK_DUPLICATE)
            self.existing_vendor_id = response.existing_vendor_id
        self._notify()

    async def wait(self) -> None:
        """Wait until the check for the latest name has resolved."""
        task = self._latest
        if task is not None and not task.done():
            await asyncio.wait({task})

    def close(self) -> None:
        self.generation += 1
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._debouncing = None
        self._latest = None
        self._reset(NAME_CHECK_IDLE)
