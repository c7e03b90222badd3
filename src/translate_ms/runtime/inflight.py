"""
In-flight request deduplication.

Concurrent callers asking for the same key share one underlying call:

    0ms   caller A: dedupe("k", op)   -> op() starts as a task
    5ms   caller B: dedupe("k", op)   -> joins A's task, op not called
    80ms  task settles                -> A and B get the same result
                                         (or the same exception), key removed
    90ms  caller C: dedupe("k", op)   -> fresh call

The entry is registered before the first suspension point and removed by
the task's done-callback, so other coroutines never observe a half-added
or half-removed key. Callers await the task through ``asyncio.shield``:
cancelling one waiting caller leaves the shared call running for the
others.
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, TypeVar

from translate_ms.core.logging import debug, get_logger, verbose

if TYPE_CHECKING:
    from translate_ms.core.metrics import GatewayMetrics

_LOG = get_logger("translate-ms.inflight")

T = TypeVar("T")


class InFlightDeduplicator:
    """
    Collapses concurrent identical operations into one.

    Guarantees at most one running execution of ``operation`` per key.
    Must be used from a single event loop.
    """

    def __init__(self, name: str = "inflight", metrics: Optional["GatewayMetrics"] = None):
        self.name = name
        self._metrics = metrics
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}

    async def dedupe(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` for ``key`` unless it is already running.

        Args:
            key: Dedup key identifying the logical request.
            operation: Zero-argument callable returning an awaitable.
                Only called when no call for ``key`` is outstanding.

        Returns:
            The shared result.

        Raises:
            Whatever the shared call raised, to every joined caller.
        """
        existing = self._pending.get(key)
        if existing is not None:
            verbose(_LOG, "dedupe_join", scope=self.name, key=key[:12])
            if self._metrics is not None:
                self._metrics.inc_dedupe_joins()
            return await asyncio.shield(existing)

        # A synchronous raise here leaves nothing registered.
        task = asyncio.ensure_future(operation())
        self._pending[key] = task
        task.add_done_callback(lambda t: self._settle(key, t))
        debug(_LOG, "dedupe_start", scope=self.name, key=key[:12], pending=len(self._pending))
        return await asyncio.shield(task)

    def _settle(self, key: str, task: "asyncio.Future[Any]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the exception retrieved even if every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
