# streamgate/services/extraction/error_classifier.py
"""
Heuristics that read yt-dlp's stderr/stdout (and spawn exceptions) and decide
what kind of failure happened. Kept apart from the runner so the patterns can
be tested and tuned on their own.
"""
from __future__ import annotations

import json
import re
from typing import Iterable, Optional

from streamgate.domain.enums.failure_kind import ToolFailureKind

MAX_TOOL_MESSAGE_LEN = 2000

_ERROR_PREFIX_RE = re.compile(
    r"^ERROR:\s*(?:\[[^\]]+\]\s*)?(?:[A-Za-z0-9_-]{11}:)?\s*",
    re.IGNORECASE,
)
_LIVE_NOT_STARTED_RE = re.compile(r"this live event will begin in", re.IGNORECASE)

_NOT_FOUND_MARKERS = (
    "video unavailable",
    "this video is unavailable",
    "this video has been removed",
    "private video",
    "does not exist",
    "incomplete youtube id",
    "http error 404",
)

_BOT_CHECK_MARKERS = (
    "confirm you're not a bot",
    "please sign in to continue",
    "cookies-from-browser",
    "use --cookies",
)

_COOKIES_INVALID_MARKERS = (
    "cookies are no longer valid",
    "likely been rotated in the browser",
)

_TRANSIENT_MARKERS = (
    "timed out",
    "connection reset",
    "connection refused",
    "connection aborted",
    "remote end closed connection",
    "temporary failure in name resolution",
    "network is unreachable",
    "http error 500",
    "http error 502",
    "http error 503",
    "http error 504",
    "unable to download api page",
)


def collect_error_text(*parts: object) -> str:
    """Join stderr/stdout/exception text the way it is pattern-matched."""
    out = []
    for p in parts:
        if p is None or p == "":
            continue
        if isinstance(p, bytes):
            p = p.decode("utf-8", errors="replace")
        if isinstance(p, BaseException):
            p = str(p)
        if not isinstance(p, str):
            p = json.dumps(p, default=str)
        out.append(p)
    return "\n".join(out)


def _normalize(text: str) -> str:
    return text.lower().replace("’", "'")


def _has_any(text: str, markers: Iterable[str]) -> bool:
    return any(m in text for m in markers)


def is_environment_failure(text: str) -> bool:
    """
    True when the tool could not run in this environment at all, as opposed
    to running and reporting a problem with the video.
    """
    msg = _normalize(text)
    if "python3" in msg and "no such file or directory" in msg:
        return True
    if "/usr/bin/env" in msg and "python" in msg and "not found" in msg:
        return True
    if "spawn" in msg and "enoent" in msg:
        return True
    if "eacces" in msg:
        return True
    # a downloaded binary built for another arch
    if "exec format error" in msg:
        return True
    return False


def is_bot_check(text: str) -> bool:
    return _has_any(_normalize(text), _BOT_CHECK_MARKERS)


def is_cookies_invalid(text: str) -> bool:
    return _has_any(_normalize(text), _COOKIES_INVALID_MARKERS)


def classify_tool_failure(text: str) -> ToolFailureKind:
    """
    Order matters: an environment failure can mention "not found", and a
    rotated-cookies message also asks the user to pass cookies.
    """
    if is_environment_failure(text):
        return ToolFailureKind.environment
    if is_cookies_invalid(text):
        return ToolFailureKind.cookies_invalid
    if is_bot_check(text):
        return ToolFailureKind.bot_check
    if _LIVE_NOT_STARTED_RE.search(text):
        return ToolFailureKind.live_not_started
    msg = _normalize(text)
    if _has_any(msg, _NOT_FOUND_MARKERS):
        return ToolFailureKind.not_found
    if _has_any(msg, _TRANSIENT_MARKERS):
        return ToolFailureKind.transient
    return ToolFailureKind.other


def extract_tool_message(text: str) -> Optional[str]:
    """
    Reduce tool output to its first `ERROR:` line (or the whole text), minus the
    `ERROR: [extractor] <id>:` prefix, capped in length.
    """
    raw = (text or "").strip()
    if not raw:
        return None
    lines = [ln.strip() for ln in raw.splitlines()]
    line = next((ln for ln in lines if ln.startswith("ERROR:")), raw)
    cleaned = _ERROR_PREFIX_RE.sub("", line)
    return cleaned[:MAX_TOOL_MESSAGE_LEN]
