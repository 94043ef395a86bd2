# streamgate/services/cache/stream_cache.py
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from streamgate.common.concurrency.single_flight import SingleFlight
from streamgate.common.logging import get_logger
from streamgate.domain.entities.resolved_stream import ResolvedStream
from streamgate.domain.ports.clock import Clock

logger = get_logger(__name__)

Resolver = Callable[[str], Awaitable[ResolvedStream]]

DEFAULT_TTL_SEC = 5 * 60 * 60
DEFAULT_SWEEP_INTERVAL_SEC = 60 * 60


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    resolutions: int = 0
    swept: int = 0


class StreamCache:
    """
    In-memory map of video id -> ResolvedStream with a fixed freshness window.

    - Freshness is checked on every lookup; an entry past its window is a miss
      and is superseded by a new resolution, never edited in place.
    - At most one resolution per video id runs at a time; concurrent callers
      share its result or its exception.
    - `sweep()` only reclaims memory. Correctness never depends on it running.
    """

    def __init__(
        self,
        ttl_sec: float = DEFAULT_TTL_SEC,
        *,
        clock: Clock = time.time,
    ) -> None:
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: Dict[str, ResolvedStream] = {}
        self._write_lock = threading.Lock()
        self._flights: SingleFlight[str, ResolvedStream] = SingleFlight("stream-resolve")
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        return CacheStats(**vars(self._stats))

    def peek(self, video_id: str) -> Optional[ResolvedStream]:
        """Fresh record for `video_id`, or None. Lock-free read."""
        rec = self._entries.get(video_id)
        if rec is not None and rec.is_fresh(self._clock(), self.ttl_sec):
            return rec
        return None

    async def get_or_resolve(self, video_id: str, resolver: Resolver) -> ResolvedStream:
        rec = self.peek(video_id)
        if rec is not None:
            self._stats.hits += 1
            logger.debug("Stream cache hit for %s", video_id)
            return rec
        self._stats.misses += 1
        return await self._flights.do(video_id, lambda: self._resolve_and_store(video_id, resolver))

    async def _resolve_and_store(self, video_id: str, resolver: Resolver) -> ResolvedStream:
        # a flight for this key may have landed between our miss and our turn
        rec = self.peek(video_id)
        if rec is not None:
            return rec
        self._stats.resolutions += 1
        logger.info("Resolving streams for %s", video_id)
        rec = await resolver(video_id)
        with self._write_lock:
            self._entries[video_id] = rec
        return rec

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock() if now is None else now
        with self._write_lock:
            stale = [k for k, rec in self._entries.items() if not rec.is_fresh(now, self.ttl_sec)]
            for k in stale:
                del self._entries[k]
        self._stats.swept += len(stale)
        if stale:
            logger.debug("Swept %d expired stream entries", len(stale))
        return len(stale)

    async def run_sweeper(self, interval_sec: float = DEFAULT_SWEEP_INTERVAL_SEC) -> None:
        """Periodic sweep loop; meant to run as a background task until cancelled."""
        while True:
            await asyncio.sleep(interval_sec)
            self.sweep()
