from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

log = logging.getLogger(__name__)


@dataclass
class FlightStats:
    started: int = 0
    joined: int = 0


class SingleFlight(Generic[K, V]):
    """
    Keyed in-flight registry: concurrent callers asking for the same key share
    one underlying call and all observe its single outcome (value or exception).

    Notes
    -----
    - The work runs as its own task, so a cancelled caller (e.g. a client that
      disconnected) does not cancel the shared call for the other waiters.
    - Unrelated keys never wait on each other; the lock only guards the registry.
    - Once a call completes its key is removed; the next caller starts a fresh call.
    """

    def __init__(self, name: str = "flight") -> None:
        self._name = name
        self._lock = asyncio.Lock()
        self._inflight: Dict[K, asyncio.Task[V]] = {}
        self._stats = FlightStats()

    def in_flight(self, key: K) -> bool:
        return key in self._inflight

    def stats(self) -> FlightStats:
        return FlightStats(started=self._stats.started, joined=self._stats.joined)

    async def do(self, key: K, fn: Callable[[], Awaitable[V]]) -> V:
        async with self._lock:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.ensure_future(fn())
                self._inflight[key] = task
                self._stats.started += 1
                task.add_done_callback(lambda t, k=key: self._forget(k, t))
            else:
                self._stats.joined += 1
                log.debug("%s: joined in-flight call for %r", self._name, key)
        return await asyncio.shield(task)

    def _forget(self, key: K, task: asyncio.Task[V]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # mark the exception retrieved; every waiter re-raises it on its own
        if not task.cancelled():
            task.exception()
