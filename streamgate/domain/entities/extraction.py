# streamgate/domain/entities/extraction.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from streamgate.domain.entities.candidate_format import CandidateFormat


@dataclass(frozen=True)
class ExtractionResult:
    """
    Normalized, framework-free output of one extraction-tool run.
    Produced by an adapter; the candidate URLs are time-limited upstream.
    """
    video_id: str
    title: str = ""
    description: str = ""
    thumbnail_url: str = ""
    duration_seconds: int = 0
    view_count: int = 0
    channel_id: str = ""
    channel_title: str = ""
    upload_date: str = ""
    formats: Tuple[CandidateFormat, ...] = field(default_factory=tuple)
