"""
Serialized, adaptively paced executor for outbound Discord calls.

Every message send/edit made on behalf of an event goes through one queue so
that announcements keep their visible order and the bot backs off when Discord
starts rate limiting. Operations run one at a time; the queue never retries.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from services.errors import ExternalChannelError, QueueClearedError

logger = logging.getLogger("stakes_bot.utils.operation_queue")

# Extra cool-down after a rate-limit failure, on top of the spacing interval
RATE_LIMIT_COOLDOWN_MS = 1000
MIN_BACKLOG_SPACING_MS = 100
MAX_ERROR_SPACING_MS = 5000


@dataclass(frozen=True)
class QueueStats:
    pending: int
    spacing_ms: float
    base_spacing_ms: float
    consecutive_errors: int
    processed: int
    failed: int
    running: bool


@dataclass
class _QueuedOperation:
    operation: Callable[[], Awaitable[Any]]
    label: str
    future: asyncio.Future
    added_at: float


def is_rate_limit_error(exc: BaseException) -> bool:
    """True when a failure indicates the external channel is throttling us."""
    if isinstance(exc, ExternalChannelError):
        return exc.is_rate_limit
    return "rate limit" in str(exc).lower()


class OperationQueue:
    """
    FIFO executor with a dynamic spacing interval between operations.

    Spacing starts at ``base_spacing_ms``. A success relaxes it by 10% (never
    below base); a rate-limit failure grows it by 50% (capped at
    ``max_spacing_ms``). When nothing has succeeded for ``stall_seconds`` and
    more than ``max_consecutive_errors`` failures have piled up, spacing is
    doubled before the next operation runs.

    ``clock`` returns monotonic seconds and ``sleep`` is awaited with seconds;
    both are injectable so tests can drive time directly.
    """

    def __init__(
        self,
        base_spacing_ms: float = 500,
        max_spacing_ms: float = 10000,
        stall_seconds: float = 30.0,
        max_consecutive_errors: int = 5,
        backlog_threshold: int = 10,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_spacing_ms = base_spacing_ms
        self.max_spacing_ms = max_spacing_ms
        self.stall_seconds = stall_seconds
        self.max_consecutive_errors = max_consecutive_errors
        self.backlog_threshold = backlog_threshold
        self._clock = clock
        self._sleep = sleep

        self.spacing_ms = base_spacing_ms
        self.consecutive_errors = 0
        self.last_success_at = clock()
        self.last_error_at: float | None = None
        self.processed = 0
        self.failed = 0

        self._items: deque[_QueuedOperation] = deque()
        self._worker: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._items)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, operation: Callable[[], Awaitable[Any]], label: str = "unnamed operation") -> asyncio.Future:
        """
        Append an operation to the tail of the queue.

        ``operation`` is a zero-argument callable returning an awaitable; it is
        not invoked until it reaches the head. The returned future resolves with
        its result or fails with its exception.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._items.append(_QueuedOperation(operation, label, future, self._clock()))
        logger.debug(f"Queued operation: {label} (queue size: {len(self._items)})")

        if not self.running:
            self._worker = loop.create_task(self._process())
        return future

    async def _process(self) -> None:
        while self._items:
            self._apply_stall_rule()

            item = self._items.popleft()
            if item.future.done():
                # Caller gave up (cancelled the future) before the item ran
                continue

            waited_ms = (self._clock() - item.added_at) * 1000
            logger.debug(f"Running queued operation: {item.label} (waited {waited_ms:.0f}ms)")

            cooldown_ms = 0
            try:
                result = await item.operation()
            except Exception as exc:
                cooldown_ms = self._record_failure(item.label, exc)
                if not item.future.done():
                    item.future.set_exception(exc)
            else:
                self._record_success()
                if not item.future.done():
                    item.future.set_result(result)

            if cooldown_ms:
                await self._sleep(cooldown_ms / 1000)

            if self._items:
                await self._sleep(self._next_wait_ms() / 1000)

    def _record_success(self) -> None:
        self.processed += 1
        self.consecutive_errors = 0
        self.last_success_at = self._clock()
        if self.spacing_ms > self.base_spacing_ms:
            relaxed = max(self.base_spacing_ms, math.floor(self.spacing_ms * 0.9))
            if relaxed < self.spacing_ms:
                logger.info(f"Operation succeeded, decreasing spacing to {relaxed}ms")
                self.spacing_ms = relaxed

    def _record_failure(self, label: str, exc: Exception) -> int:
        """Update error state; return the extra cool-down in ms."""
        self.failed += 1
        self.consecutive_errors += 1
        self.last_error_at = self._clock()

        if not is_rate_limit_error(exc):
            logger.error(f"Queued operation failed: {label}: {exc}")
            return 0

        widened = min(self.max_spacing_ms, self.spacing_ms * 1.5)
        if widened > self.spacing_ms:
            logger.warning(f"Rate limit hit during {label}; increasing spacing to {widened}ms")
            self.spacing_ms = widened
        else:
            logger.warning(f"Rate limit hit during {label}; spacing already at {self.spacing_ms}ms")
        return RATE_LIMIT_COOLDOWN_MS

    def _apply_stall_rule(self) -> None:
        since_success = self._clock() - self.last_success_at
        if since_success > self.stall_seconds and self.consecutive_errors > self.max_consecutive_errors:
            forced = min(self.max_spacing_ms, self.spacing_ms * 2)
            if forced > self.spacing_ms:
                logger.warning(
                    f"No successful operation in {since_success:.0f}s and "
                    f"{self.consecutive_errors} consecutive errors; increasing spacing to {forced}ms"
                )
                self.spacing_ms = forced

    def _next_wait_ms(self) -> float:
        wait = self.spacing_ms
        if len(self._items) > self.backlog_threshold:
            wait = max(MIN_BACKLOG_SPACING_MS, wait * 0.75)
        if self.consecutive_errors > 0:
            wait = min(MAX_ERROR_SPACING_MS, wait * (1 + self.consecutive_errors * 0.2))
        return wait

    def clear(self) -> int:
        """Fail every pending operation with QueueClearedError; return how many."""
        count = 0
        while self._items:
            item = self._items.popleft()
            if not item.future.done():
                item.future.set_exception(QueueClearedError(f"Queue was cleared before '{item.label}' ran"))
                count += 1
        logger.info(f"Cleared operation queue ({count} items)")
        return count

    def set_spacing(self, ms: float, update_base: bool = False) -> None:
        previous = self.spacing_ms
        self.spacing_ms = ms
        if update_base:
            self.base_spacing_ms = ms
            logger.info(f"Set spacing to {ms}ms (new base value)")
        else:
            logger.info(f"Set spacing to {ms}ms (was {previous}ms)")
        if ms > previous:
            self.consecutive_errors = 0

    def reset(self) -> None:
        """Return spacing to base and forget error history."""
        self.spacing_ms = self.base_spacing_ms
        self.consecutive_errors = 0
        self.last_success_at = self._clock()
        logger.info(f"Reset spacing to base value ({self.base_spacing_ms}ms)")

    def stats(self) -> QueueStats:
        return QueueStats(
            pending=len(self._items),
            spacing_ms=self.spacing_ms,
            base_spacing_ms=self.base_spacing_ms,
            consecutive_errors=self.consecutive_errors,
            processed=self.processed,
            failed=self.failed,
            running=self.running,
        )

    async def shutdown(self) -> int:
        """Clear pending work and wait for the in-flight operation to finish."""
        cleared = self.clear()
        worker = self._worker
        if worker is not None and not worker.done():
            await asyncio.gather(worker, return_exceptions=True)
        return cleared
