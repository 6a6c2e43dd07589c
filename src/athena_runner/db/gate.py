from __future__ import annotations

import asyncio
from typing import List

from athena_runner.exceptions.errors import ConfigurationError
from athena_runner.logging.logger import get_logger


log = get_logger("db.gate")


class AdmissionGate:
    """Bounds how many query lifecycles are active at once.

    Unlike asyncio.Semaphore the capacity can be changed while slots are held;
    lowering it only stops new admissions until enough slots are released.
    Meant to be used from a single event loop.
    """

    def __init__(self, capacity: int = 10):
        self._capacity = self._check(capacity)
        self._active = 0
        self._waiters: List[asyncio.Future] = []

    @staticmethod
    def _check(capacity: int) -> int:
        if int(capacity) < 1:
            raise ConfigurationError(f"max concurrent queries must be >= 1, got {capacity}")
        return int(capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        return self._active

    def set_capacity(self, capacity: int) -> None:
        self._capacity = self._check(capacity)
        log.info("Admission capacity changed", extra={"capacity": self._capacity, "active": self._active})
        self._wake()

    def _wake(self) -> None:
        # Waiters re-check the limit themselves, so waking all of them is safe.
        for fut in self._waiters:
            if not fut.done():
                fut.set_result(None)

    async def acquire(self) -> None:
        loop = asyncio.get_running_loop()
        while self._active >= self._capacity:
            fut = loop.create_future()
            self._waiters.append(fut)
            try:
                await fut
            finally:
                self._waiters.remove(fut)
        self._active += 1

    def release(self) -> None:
        if self._active <= 0:
            raise RuntimeError("AdmissionGate.release() called without a matching acquire()")
        self._active -= 1
        self._wake()

    async def __aenter__(self) -> "AdmissionGate":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
