# streamgate/services/schemas/streams.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from streamgate.domain.entities.candidate_format import CandidateFormat
from streamgate.domain.entities.extraction import ExtractionResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StreamLinksResponse(_CamelModel):
    """
    Returned by /stream. Only the requested kinds appear; a requested kind
    with no upstream rendition is null. URLs always point at our proxy.
    """
    title: str = ""
    duration: int = Field(0, ge=0)
    thumbnail_url: str = Field("", alias="thumbnailUrl")
    video_url: Optional[str] = Field(None, alias="videoUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")


class FormatSummary(_CamelModel):
    """Candidate format metadata. Deliberately has no URL field."""
    format_id: str = Field(..., alias="formatId")
    ext: Optional[str] = None
    quality: str = "unknown"
    filesize: Optional[int] = None
    vcodec: Optional[str] = None
    acodec: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    abr: Optional[float] = None

    @classmethod
    def from_candidate(cls, f: CandidateFormat) -> "FormatSummary":
        return cls(
            format_id=f.format_id,
            ext=f.ext,
            quality=f.quality,
            filesize=f.filesize,
            vcodec=f.vcodec,
            acodec=f.acodec,
            width=f.width,
            height=f.height,
            fps=f.fps,
            abr=f.abr,
        )


class VideoInfo(_CamelModel):
    id: str
    title: str = ""
    description: str = ""
    thumbnail_url: str = Field("", alias="thumbnailUrl")
    duration: int = 0
    view_count: int = Field(0, alias="viewCount")
    channel_id: str = Field("", alias="channelId")
    channel_title: str = Field("", alias="channelTitle")
    upload_date: str = Field("", alias="uploadDate")
    formats: List[FormatSummary] = Field(default_factory=list)

    @classmethod
    def from_result(cls, r: ExtractionResult) -> "VideoInfo":
        return cls(
            id=r.video_id,
            title=r.title,
            description=r.description,
            thumbnail_url=r.thumbnail_url,
            duration=r.duration_seconds,
            view_count=r.view_count,
            channel_id=r.channel_id,
            channel_title=r.channel_title,
            upload_date=r.upload_date,
            formats=[FormatSummary.from_candidate(f) for f in r.formats],
        )


class VideoInfoResponse(BaseModel):
    video: VideoInfo


class ErrorBody(BaseModel):
    error: str
    code: Optional[str] = None
    details: Optional[str] = None
