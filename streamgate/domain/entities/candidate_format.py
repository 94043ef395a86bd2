# streamgate/domain/entities/candidate_format.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

NO_CODEC = "none"


@dataclass(frozen=True)
class CandidateFormat:
    """
    One downloadable rendition reported by the extraction tool.
    Ephemeral: produced per extraction call and discarded after selection.

    A codec of "none" means the stream is absent; a missing codec (None) means
    the tool did not say, and is treated as present.
    """
    format_id: str
    url: Optional[str]
    ext: Optional[str] = None
    quality: str = "unknown"
    vcodec: Optional[str] = None
    acodec: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    abr: Optional[float] = None
    filesize: Optional[int] = None

    @property
    def has_video(self) -> bool:
        return self.vcodec != NO_CODEC

    @property
    def has_audio(self) -> bool:
        return self.acodec != NO_CODEC

    @property
    def is_combined(self) -> bool:
        return self.has_video and self.has_audio

    @property
    def is_video_only(self) -> bool:
        return self.has_video and self.acodec == NO_CODEC

    @property
    def is_audio_only(self) -> bool:
        return self.vcodec == NO_CODEC and self.has_audio
