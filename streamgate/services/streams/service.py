# streamgate/services/streams/service.py
from __future__ import annotations

import time

from streamgate.common.logging import get_logger
from streamgate.common.settings import Settings
from streamgate.domain.entities.extraction import ExtractionResult
from streamgate.domain.entities.resolved_stream import ResolvedStream
from streamgate.domain.policies.format_selector import select_stream_urls
from streamgate.domain.ports.clock import Clock
from streamgate.domain.ports.extractor import StreamExtractorPort
from streamgate.services.cache.stream_cache import StreamCache
from streamgate.services.extraction.fallback_binary import FallbackBinaryInstaller
from streamgate.services.extraction.ytdlp_runner import YtdlpRunner

logger = get_logger(__name__)


class StreamService:
    """
    Long-lived owner of the extraction runner and the stream cache.
    One instance per app; all mutable shared state lives behind it.
    """

    def __init__(self, extractor: StreamExtractorPort, cache: StreamCache, *, clock: Clock = time.time) -> None:
        self.extractor = extractor
        self.cache = cache
        self._clock = clock

    async def resolve(self, video_id: str) -> ResolvedStream:
        return await self.cache.get_or_resolve(video_id, self._resolve_uncached)

    async def video_info(self, video_id: str) -> ExtractionResult:
        # uncached: metadata callers want the full, current format list
        return await self.extractor.extract(video_id)

    async def _resolve_uncached(self, video_id: str) -> ResolvedStream:
        info = await self.extractor.extract(video_id)
        picked = select_stream_urls(info.formats)
        if picked.audio_from_combined:
            logger.info("No audio-only format for %s; reusing combined stream for audio", video_id)
        return ResolvedStream(
            video_id=video_id,
            video_url=picked.video_url,
            audio_url=picked.audio_url,
            title=info.title,
            thumbnail_url=info.thumbnail_url,
            duration_seconds=info.duration_seconds,
            resolved_at=self._clock(),
        )


def build_stream_service(cfg: Settings) -> StreamService:
    installer = FallbackBinaryInstaller(
        base_url=cfg.ytdlp_download_base_url,
        cache_dir=cfg.ytdlp_cache_dir,
        proxy=cfg.outbound_proxy,
        timeout_sec=cfg.ytdlp_download_timeout_seconds,
    )
    runner = YtdlpRunner(
        bin_path=cfg.ytdlp_bin,
        timeout_sec=cfg.ytdlp_timeout_seconds,
        retries=cfg.ytdlp_retries,
        proxy=cfg.outbound_proxy,
        cookies_path=cfg.ytdlp_cookies_path,
        installer=installer,
    )
    cache = StreamCache(ttl_sec=cfg.stream_cache_ttl_seconds)
    return StreamService(runner, cache)
