"""
Best-effort usage accounting.

Usage is recorded for signed-in users after a successful translation or
synthesis. Recording is dispatched as a background task: the response
never waits for it and never fails because of it. Failures are logged.

Cost model: characters x cost_per_char (default $0.000015).
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Protocol, Set

from translate_ms.core.config import Defaults
from translate_ms.core.logging import get_logger, info, warn

_LOG = get_logger("translate-ms.usage")


class UsageSink(Protocol):
    async def record(self, user_id: str, kind: str, volume: int, cost: float, provider: str) -> None:
        ...


@dataclass
class UsageEvent:
    user_id: str
    kind: str
    volume: int
    cost: float
    provider: str


class InMemoryUsageSink:
    """Keeps events in a list. Handy for tests and local runs."""

    def __init__(self) -> None:
        self.events: List[UsageEvent] = []

    async def record(self, user_id: str, kind: str, volume: int, cost: float, provider: str) -> None:
        self.events.append(UsageEvent(user_id, kind, volume, cost, provider))


class LoggingUsageSink:
    """Writes usage to the structured log (aggregated downstream from JSONL)."""

    async def record(self, user_id: str, kind: str, volume: int, cost: float, provider: str) -> None:
        info(_LOG, "usage", user=user_id, kind=kind, volume=volume, cost=round(cost, 6), provider=provider)


class UsageRecorder:
    """
    Dispatches usage events without blocking the caller.

    Outstanding tasks are tracked so shutdown (and tests) can wait for
    them with ``drain()``.
    """

    def __init__(self, sink: UsageSink, cost_per_char: float = Defaults.USAGE_COST_PER_CHAR):
        self._sink = sink
        self._cost_per_char = cost_per_char
        self._tasks: Set["asyncio.Task[None]"] = set()

    def cost_for(self, volume: int) -> float:
        return volume * self._cost_per_char

    def record(self, user_id: Optional[str], kind: str, volume: int, provider: str) -> None:
        """Fire and forget. Anonymous requests are not recorded."""
        if not user_id:
            return
        task = asyncio.ensure_future(self._record(user_id, kind, volume, provider))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _record(self, user_id: str, kind: str, volume: int, provider: str) -> None:
        try:
            await self._sink.record(user_id, kind, volume, self.cost_for(volume), provider)
        except Exception as e:
            warn(_LOG, "usage_record_failed", kind=kind, provider=provider, error=str(e))

    async def drain(self) -> None:
        """Wait for all outstanding usage tasks."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)
