# streamgate/domain/entities/resolved_stream.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from streamgate.domain.enums.media_kind import MediaKind


@dataclass(frozen=True)
class ResolvedStream:
    """
    The cached outcome of resolving one video identifier.

    Records are built whole and never mutated: a later resolution replaces the
    record instead of editing it, so readers never observe a partial one.
    """
    video_id: str
    video_url: Optional[str]
    audio_url: Optional[str]
    title: str
    thumbnail_url: str
    duration_seconds: int
    resolved_at: float

    @property
    def playable(self) -> bool:
        return bool(self.video_url or self.audio_url)

    def url_for(self, kind: MediaKind) -> Optional[str]:
        return self.audio_url if kind is MediaKind.audio else self.video_url

    def is_fresh(self, now: float, ttl_sec: float) -> bool:
        return now - self.resolved_at < ttl_sec
