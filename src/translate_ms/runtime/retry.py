"""
Retry with exponential, jittered backoff.

Outbound provider calls fail transiently (rate limits, timeouts, 5xx).
RetryExecutor re-runs such a call up to ``max_attempts`` times:

    attempt 0 fails -> sleep base * 1 + jitter
    attempt 1 fails -> sleep base * 2 + jitter
    attempt 2 fails -> raise the error from attempt 2

Jitter is uniform in [0, jitter_s] and keeps many clients that failed
together from retrying together.
"""
from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from translate_ms.core.config import Defaults
from translate_ms.core.logging import get_logger, verbose, warn

if TYPE_CHECKING:
    from translate_ms.core.metrics import GatewayMetrics

_LOG = get_logger("translate-ms.retry")

T = TypeVar("T")


class RetryExecutor:
    """
    Runs an async operation with bounded retries.

    Args:
        jitter_s: Upper bound of the random jitter added to each delay.
        should_retry: Predicate deciding whether an error is worth another
            attempt. Errors it rejects are raised immediately.
        sleep: Awaitable sleep, injectable for tests.
        rand: Returns a float in [0, 1), injectable for tests.
        metrics: Optional metrics sink for retry counts.
    """

    def __init__(
        self,
        jitter_s: float = Defaults.RETRY_JITTER_S,
        should_retry: Optional[Callable[[BaseException], bool]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
        metrics: Optional["GatewayMetrics"] = None,
    ):
        self.jitter_s = float(jitter_s)
        self._should_retry = should_retry
        self._sleep = sleep
        self._rand = rand
        self._metrics = metrics

    def delay_for(self, attempt: int, base_delay: float) -> float:
        """Delay after failed attempt ``attempt`` (0-indexed)."""
        return base_delay * (2 ** attempt) + self._rand() * self.jitter_s

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int,
        base_delay: float,
        name: str = "call",
    ) -> T:
        """
        Call ``operation`` until it succeeds or attempts run out.

        Each attempt calls ``operation()`` afresh. Nothing carries over
        from one attempt to the next.

        Raises:
            ValueError: If max_attempts < 1.
            The last error raised by ``operation``.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        for attempt in range(max_attempts):
            try:
                return await operation()
            except Exception as e:
                if self._should_retry is not None and not self._should_retry(e):
                    verbose(_LOG, "not_retryable", call=name, attempt=attempt + 1, error=str(e))
                    raise
                if attempt + 1 >= max_attempts:
                    warn(_LOG, "retries_exhausted", call=name, attempts=max_attempts, error=str(e))
                    raise
                delay = self.delay_for(attempt, base_delay)
                verbose(_LOG, "retrying", call=name, attempt=attempt + 1,
                        delay=round(delay, 3), error=str(e))
                if self._metrics is not None:
                    self._metrics.inc_retries(name)
                await self._sleep(delay)

        raise AssertionError("unreachable")
