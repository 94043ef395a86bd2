from __future__ import annotations
from enum import StrEnum


class MediaKind(StrEnum):
    video = "video"
    audio = "audio"


class StreamType(StrEnum):
    video = "video"
    audio = "audio"
    both = "both"

    def kinds(self) -> tuple[MediaKind, ...]:
        if self is StreamType.both:
            return (MediaKind.video, MediaKind.audio)
        return (MediaKind(self.value),)
