# streamgate/domain/policies/format_selector.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from streamgate.domain.entities.candidate_format import CandidateFormat

STREAMING_VIDEO_EXTS = frozenset({"mp4"})
STREAMING_AUDIO_EXTS = frozenset({"m4a", "mp4", "webm"})
PREFERRED_AUDIO_EXT = "m4a"  # plays natively on iOS/AVFoundation
MAX_PREFERRED_HEIGHT = 720


@dataclass(frozen=True)
class StreamSelection:
    video: Optional[CandidateFormat] = None
    audio: Optional[CandidateFormat] = None
    # audio role served by the combined video URL (no audio-only rendition)
    audio_from_combined: bool = False

    @property
    def video_url(self) -> Optional[str]:
        return self.video.url if self.video else None

    @property
    def audio_url(self) -> Optional[str]:
        return self.audio.url if self.audio else None


def _by_height_desc(formats: Iterable[CandidateFormat]) -> List[CandidateFormat]:
    # stable: equal heights keep the tool's order
    return sorted(formats, key=lambda f: f.height or 0, reverse=True)


def _prefer_capped_height(ranked: Sequence[CandidateFormat]) -> Optional[CandidateFormat]:
    """Highest rendition at or below 720p, else the highest overall."""
    if not ranked:
        return None
    capped = next((f for f in ranked if f.height is not None and f.height <= MAX_PREFERRED_HEIGHT), None)
    return capped or ranked[0]


def pick_video(formats: Sequence[CandidateFormat]) -> Optional[CandidateFormat]:
    combined = _by_height_desc(
        f for f in formats if f.url and f.is_combined and f.ext in STREAMING_VIDEO_EXTS
    )
    chosen = _prefer_capped_height(combined)
    if chosen is not None:
        return chosen

    video_only = _by_height_desc(
        f for f in formats if f.url and f.is_video_only and f.ext in STREAMING_VIDEO_EXTS
    )
    return _prefer_capped_height(video_only)


def pick_audio(formats: Sequence[CandidateFormat]) -> Optional[CandidateFormat]:
    ranked = sorted(
        (f for f in formats if f.url and f.is_audio_only and f.ext in STREAMING_AUDIO_EXTS),
        key=lambda f: f.abr or 0,
        reverse=True,
    )
    if not ranked:
        return None
    return next((f for f in ranked if f.ext == PREFERRED_AUDIO_EXT), ranked[0])


def select_stream_urls(formats: Sequence[CandidateFormat]) -> StreamSelection:
    """
    Pick the video and audio renditions a client should receive.

    Video: combined (video+audio) mp4 first, capped at 720p when possible, else
    video-only mp4 under the same cap. Audio: audio-only m4a/mp4/webm by bitrate,
    with m4a winning whenever one exists.

    When there is no audio-only rendition but the video pick is a combined one,
    the combined URL doubles as the audio URL. Clients rely on getting a
    non-null audio URL here even though it means full video bytes are served.
    Never raises; missing kinds are None.
    """
    video = pick_video(formats)
    audio = pick_audio(formats)
    if audio is None and video is not None and video.is_combined:
        return StreamSelection(video=video, audio=video, audio_from_combined=True)
    return StreamSelection(video=video, audio=audio)
