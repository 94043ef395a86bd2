# streamgate/domain/exceptions.py
from __future__ import annotations

from http import HTTPStatus
from typing import Optional


class StreamGateError(Exception):
    """
    Base for every error the service surfaces to clients.

    `message` is always safe to show a client: it never contains upstream URLs,
    tool command lines or tracebacks. `status_code` and `code` drive the JSON
    error body built by the API layer.
    """
    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    code: Optional[str] = None
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---- Extraction -------------------------------------------------------------
class ExtractionFailed(StreamGateError):
    """The extraction tool ran but could not produce formats for the video."""
    default_message = "Failed to get stream URLs"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        tool_message: Optional[str] = None,
        stderr: Optional[str] = None,
        rc: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        # cleaned single-line tool message; only exposed in debug responses
        self.tool_message = tool_message
        self.stderr = stderr
        self.rc = rc


class ExtractionNotFound(ExtractionFailed):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "Video not found"


class ExtractionTimeout(ExtractionFailed):
    default_message = "Timed out resolving stream"


class TransientExtractionError(ExtractionFailed):
    """Network-level hiccup; the runner retries these a fixed number of times."""


class BotCheckRequired(ExtractionFailed):
    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    code = "YOUTUBE_BOT_CHECK"
    default_message = (
        "YouTube blocked this server (bot check). Configure yt-dlp cookies "
        "(YTDLP_COOKIES_PATH) on the backend and restart."
    )
    cookies_configured_message = (
        "YouTube blocked this server (bot check). Cookies are configured, but YouTube still "
        "requires verification. This is usually caused by the server/proxy exit IP reputation. "
        "Try a different proxy/VPN exit (prefer residential) or complete the 'confirm you're "
        "not a bot' challenge in a browser using the same exit IP, then re-export cookies "
        "and restart."
    )


class CookiesInvalid(ExtractionFailed):
    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    code = "YOUTUBE_COOKIES_INVALID"
    default_message = (
        "YouTube cookies are configured but invalid/rotated. Re-export cookies "
        "(YTDLP_COOKIES_PATH), then restart."
    )


class LiveNotStarted(ExtractionFailed):
    status_code = HTTPStatus.CONFLICT
    code = "LIVE_NOT_STARTED"
    default_message = "This live event has not started yet"


class EnvironmentFailure(ExtractionFailed):
    """
    The tool could not even run here (missing interpreter, permissions, spawn
    failure). Handled inside the runner by switching to the fallback binary.
    """


class DownloadFailed(StreamGateError):
    code = "STREAM_BACKEND_UNAVAILABLE"
    default_message = "Failed to download yt-dlp"


# ---- Resolution / proxying --------------------------------------------------
class NoPlayableStream(StreamGateError):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "No playable streams found"


class StreamNotFound(StreamGateError):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "No stream URL found"


class UpstreamFetchFailed(StreamGateError):
    default_message = "Failed to proxy stream"


# ---- Capability tokens ------------------------------------------------------
class TokenError(StreamGateError):
    status_code = HTTPStatus.UNAUTHORIZED


class MissingToken(TokenError):
    default_message = "Missing stream token"


class ExpiredToken(TokenError):
    default_message = "Expired stream token"


class InvalidToken(TokenError):
    status_code = HTTPStatus.FORBIDDEN
    default_message = "Invalid stream token"


class AuthenticationRequired(StreamGateError):
    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "Authentication required"
