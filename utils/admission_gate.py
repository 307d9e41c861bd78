"""
Admission Gate

Bounded admission for concurrent model calls on a single event loop.
Caps the number of simultaneously in-flight calls so a batch run stays
inside the upstream provider's rate limits.

Usage:
    gate = AdmissionGate(limit=10)

    async def score(row):
        async with gate:
            return await metric.measure(instruction, row["reply"])

    results = await asyncio.gather(*(score(r) for r in rows))
    print(gate.peak_in_flight)  # never above 10
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 10


class AdmissionGate:
    """
    Counting semaphore with in-flight instrumentation.

    Tasks are admitted in submission order, completion order is unspecified.
    Not a fair queue and not thread-safe: use from one event loop only.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT):
        """
        Args:
            limit: Maximum number of simultaneously admitted tasks.
        """
        if limit < 1:
            raise ValueError(f"Admission limit must be >= 1, got {limit}")
        self.limit = limit
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._in_flight = 0
        self._peak = 0
        self._admitted = 0

    @property
    def in_flight(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of simultaneously admitted tasks seen so far."""
        return self._peak

    @property
    def admitted(self) -> int:
        """Total number of tasks admitted since creation or the last reset."""
        return self._admitted

    def _sem(self) -> asyncio.Semaphore:
        # Created lazily so the gate can be built outside a running loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.limit)
        return self._semaphore

    async def __aenter__(self) -> "AdmissionGate":
        await self._sem().acquire()
        self._in_flight += 1
        self._admitted += 1
        if self._in_flight > self._peak:
            self._peak = self._in_flight
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._in_flight -= 1
        self._sem().release()

    async def run(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run a coroutine factory inside one admission slot."""
        async with self:
            return await func()

    def reset(self) -> None:
        """Clear instrumentation counters. Does not touch held slots."""
        self._peak = self._in_flight
        self._admitted = 0
