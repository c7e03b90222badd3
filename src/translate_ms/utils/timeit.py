"""
Timing helpers.

    with timeit("shared_lookup") as t:
        record = await self._store.read_by_hash(key)
    debug(_LOG, "shared_lookup", seconds=round(t.seconds, 4))
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter


@dataclass
class Timing:
    name: str
    seconds: float


class timeit:
    """
    Context manager that records elapsed time in ``self.timing``.

    Inside a coroutine the measurement includes time spent suspended at
    awaits within the block.
    """

    def __init__(self, name: str):
        self.name = name
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0)

    @property
    def seconds(self) -> float:
        """Elapsed seconds, or -1.0 while the block is still running."""
        return self.timing.seconds if self.timing else -1.0
