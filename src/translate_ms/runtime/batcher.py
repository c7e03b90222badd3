"""
Request batching queue (client side).

Bounds how many requests a client sends at once. Submitted operations
wait in a FIFO queue; one pump task drains it in fixed-size batches:

    submit x12, batch_size=5
        batch 1: tasks 1-5 run concurrently, all awaited
        pause batch_delay
        batch 2: tasks 6-10
        pause batch_delay
        batch 3: tasks 11-12

A failing task rejects only its own submitter. Calling submit() while the
pump is draining appends to the live queue; a second pump is never
started.

Usage:
    queue = RequestBatchingQueue(batch_size=5, batch_delay=0.05)
    result = await queue.submit(lambda: client.translate("hello", "vi"))
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Deque, Dict, List, Optional, TypeVar

from translate_ms.core.config import Defaults
from translate_ms.core.logging import debug, get_logger, verbose

if TYPE_CHECKING:
    from translate_ms.core.metrics import GatewayMetrics

_LOG = get_logger("translate-ms.batcher")

T = TypeVar("T")


@dataclass
class QueuedTask:
    """A submitted operation and the future its submitter awaits."""
    operation: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"
    submit_time: float = field(default_factory=time.perf_counter)


@dataclass
class BatchStats:
    """Statistics for the queue."""
    batches_processed: int
    total_tasks: int
    failed_tasks: int
    avg_batch_size: float
    avg_wait_ms: float
    queued: int
    processing: bool


class RequestBatchingQueue:
    """
    FIFO queue drained in concurrent batches by a single pump task.

    Args:
        batch_size: Tasks per batch.
        batch_delay: Pause in seconds between batches.
        sleep: Awaitable sleep, injectable for tests.
        metrics: Optional metrics sink for queue depth.
    """

    def __init__(
        self,
        batch_size: int = Defaults.BATCHING_BATCH_SIZE,
        batch_delay: float = Defaults.BATCHING_BATCH_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics: Optional["GatewayMetrics"] = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = int(batch_size)
        self.batch_delay = float(batch_delay)
        self._sleep = sleep
        self._metrics = metrics

        self._queue: Deque[QueuedTask] = deque()
        self._pump: Optional["asyncio.Task[None]"] = None

        self._batches_processed = 0
        self._total_tasks = 0
        self._failed_tasks = 0
        self._total_wait_ms = 0.0

    @property
    def processing(self) -> bool:
        """True while the pump task is draining."""
        return self._pump is not None and not self._pump.done()

    async def submit(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Queue ``operation`` and wait for its result.

        Raises:
            Whatever ``operation`` raised.
        """
        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._queue.append(QueuedTask(operation=operation, future=future))
        self._report_depth()
        self._ensure_pump()
        return await future

    def _ensure_pump(self) -> None:
        if self.processing:
            return
        self._pump = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            batch: List[QueuedTask] = []
            while self._queue and len(batch) < self.batch_size:
                batch.append(self._queue.popleft())
            self._report_depth()

            verbose(_LOG, "batch_start", size=len(batch), remaining=len(self._queue))
            await asyncio.gather(*(self._run(task) for task in batch), return_exceptions=True)
            self._batches_processed += 1

            if self._queue:
                await self._sleep(self.batch_delay)

    async def _run(self, task: QueuedTask) -> None:
        self._total_tasks += 1
        self._total_wait_ms += (time.perf_counter() - task.submit_time) * 1000
        try:
            result = await task.operation()
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as e:
            self._failed_tasks += 1
            debug(_LOG, "task_failed", error=str(e))
            if not task.future.done():
                task.future.set_exception(e)
            return
        if not task.future.done():
            task.future.set_result(result)

    def _report_depth(self) -> None:
        if self._metrics is not None:
            self._metrics.set_queue_depth(len(self._queue))

    async def close(self) -> None:
        """Stop the pump and cancel everything still waiting."""
        while self._queue:
            task = self._queue.popleft()
            if not task.future.done():
                task.future.cancel()
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
        self._pump = None
        self._report_depth()

    def stats(self) -> BatchStats:
        return BatchStats(
            batches_processed=self._batches_processed,
            total_tasks=self._total_tasks,
            failed_tasks=self._failed_tasks,
            avg_batch_size=(self._total_tasks / self._batches_processed if self._batches_processed else 0.0),
            avg_wait_ms=(self._total_wait_ms / self._total_tasks if self._total_tasks else 0.0),
            queued=len(self._queue),
            processing=self.processing,
        )

    def stats_dict(self) -> Dict[str, Any]:
        s = self.stats()
        return {
            "batches_processed": s.batches_processed,
            "total_tasks": s.total_tasks,
            "failed_tasks": s.failed_tasks,
            "avg_batch_size": round(s.avg_batch_size, 2),
            "avg_wait_ms": round(s.avg_wait_ms, 2),
            "queued": s.queued,
            "processing": s.processing,
        }
