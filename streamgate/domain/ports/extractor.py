from __future__ import annotations
from typing import Protocol
from streamgate.domain.entities.extraction import ExtractionResult


class StreamExtractorPort(Protocol):
    async def extract(self, video_id: str) -> ExtractionResult: ...
