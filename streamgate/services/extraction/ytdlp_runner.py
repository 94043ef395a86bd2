# streamgate/services/extraction/ytdlp_runner.py
from __future__ import annotations

import asyncio
import contextlib
import json
import shlex
import shutil
from asyncio.subprocess import PIPE, create_subprocess_exec
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from streamgate.common.logging import get_logger
from streamgate.domain.entities.candidate_format import CandidateFormat
from streamgate.domain.entities.extraction import ExtractionResult
from streamgate.domain.enums.failure_kind import ToolFailureKind
from streamgate.domain.exceptions import (
    BotCheckRequired,
    CookiesInvalid,
    EnvironmentFailure,
    ExtractionFailed,
    ExtractionNotFound,
    ExtractionTimeout,
    LiveNotStarted,
    TransientExtractionError,
)
from streamgate.domain.ports.extractor import StreamExtractorPort
from streamgate.services.extraction.error_classifier import (
    classify_tool_failure,
    collect_error_text,
    extract_tool_message,
)
from streamgate.services.extraction.fallback_binary import FallbackBinaryInstaller

logger = get_logger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

_FAILURES: Dict[ToolFailureKind, Type[ExtractionFailed]] = {
    ToolFailureKind.environment: EnvironmentFailure,
    ToolFailureKind.not_found: ExtractionNotFound,
    ToolFailureKind.bot_check: BotCheckRequired,
    ToolFailureKind.cookies_invalid: CookiesInvalid,
    ToolFailureKind.live_not_started: LiveNotStarted,
    ToolFailureKind.transient: TransientExtractionError,
    ToolFailureKind.other: ExtractionFailed,
}


def watch_url(video_id: str) -> str:
    return WATCH_URL.format(video_id=video_id)


def failure_from_output(
    text: str,
    *,
    stderr: Optional[str] = None,
    rc: Optional[int] = None,
    cookies_configured: bool = False,
) -> ExtractionFailed:
    """Map tool output to the matching ExtractionFailed subclass."""
    kind = classify_tool_failure(text)
    tool_message = extract_tool_message(text)
    cls = _FAILURES[kind]
    message = None
    # the live-event message tells the client when to come back
    if kind is ToolFailureKind.live_not_started:
        message = tool_message
    elif kind is ToolFailureKind.bot_check and cookies_configured:
        message = BotCheckRequired.cookies_configured_message
    return cls(message, tool_message=tool_message, stderr=stderr, rc=rc)


class YtdlpRunner(StreamExtractorPort):
    """
    Runs yt-dlp as a subprocess and normalizes its JSON into an ExtractionResult.

    Failure policy:
      - transient network errors are retried a fixed number of times;
      - bot-check, cookies, not-found, live and timeout failures are not;
      - an environment failure (tool cannot run here) switches the runner to a
        downloaded standalone binary and retries once. The switch is permanent
        for the life of the runner.
    """

    def __init__(
        self,
        *,
        bin_path: str = "yt-dlp",
        timeout_sec: float = 15.0,
        retries: int = 2,
        proxy: Optional[str] = None,
        cookies_path: Optional[Path] = None,
        installer: Optional[FallbackBinaryInstaller] = None,
        retry_wait_max: float = 4.0,
    ) -> None:
        # resolve to an absolute path for nicer logs; a missing tool is left to
        # fail at spawn time so the fallback can kick in
        self.primary_bin = shutil.which(bin_path) or bin_path
        self.timeout_sec = timeout_sec
        self.retries = max(0, int(retries))
        self.proxy = proxy
        self.cookies_path = cookies_path
        self.installer = installer
        self.retry_wait_max = retry_wait_max
        self._fallback_bin: Optional[str] = None
        self._switch_lock = asyncio.Lock()

    # ---- State ---------------------------------------------------------------
    @property
    def active_bin(self) -> str:
        return self._fallback_bin or self.primary_bin

    @property
    def using_fallback(self) -> bool:
        return self._fallback_bin is not None

    # ---- Port API ------------------------------------------------------------
    async def extract(self, video_id: str) -> ExtractionResult:
        data = await self.fetch_info(video_id)
        return parse_info_json(data, video_id=video_id)

    async def fetch_info(self, video_id: str) -> Dict[str, Any]:
        url = watch_url(video_id)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0, max=self.retry_wait_max),
            retry=retry_if_exception_type(TransientExtractionError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("Retrying yt-dlp for %s (attempt %d)", video_id, attempt.retry_state.attempt_number)
                return await self._invoke(url)
        raise ExtractionFailed()  # unreachable: reraise=True

    # ---- Invocation ----------------------------------------------------------
    def build_cmd(self, binary: str, url: str) -> List[str]:
        cmd = [
            binary,
            "--dump-single-json",
            "--no-playlist",
            "--no-check-certificates",
            "--no-warnings",
            "--prefer-free-formats",
            "--socket-timeout", str(int(self.timeout_sec)),
            "--retries", str(self.retries),
        ]
        if self.proxy:
            cmd += ["--proxy", self.proxy]
        if self.cookies_path:
            cmd += ["--cookies", str(self.cookies_path)]
        cmd += ["--", url]
        return cmd

    async def _invoke(self, url: str) -> Dict[str, Any]:
        binary = self.active_bin
        try:
            return await self._run_once(binary, url)
        except EnvironmentFailure as e:
            # only a failure of the primary binary earns a fallback attempt
            if self.installer is None or binary != self.primary_bin:
                raise
            logger.warning("yt-dlp cannot run here (%s); switching to standalone binary", e.tool_message or e)
            path = await self.installer.ensure()
            await self._switch_to(str(path))
            return await self._run_once(self.active_bin, url)

    async def _switch_to(self, path: str) -> None:
        async with self._switch_lock:
            if self._fallback_bin is None:
                self._fallback_bin = path
                logger.info("yt-dlp fallback enabled: %s", path)

    async def _run_once(self, binary: str, url: str) -> Dict[str, Any]:
        cmd = self.build_cmd(binary, url)
        logger.debug("yt-dlp cmd: %s", " ".join(shlex.quote(p) for p in cmd))
        try:
            proc = await create_subprocess_exec(
                *cmd,
                stdout=PIPE,
                stderr=PIPE,
            )
        except OSError as e:
            # the binary could not be started at all; the tool never ran
            raise EnvironmentFailure(tool_message=collect_error_text(e)) from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_sec)
        except asyncio.TimeoutError as e:
            raise ExtractionTimeout(tool_message=f"yt-dlp timed out after {self.timeout_sec}s") from e
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise failure_from_output(
                collect_error_text(stderr, stdout),
                stderr=stderr,
                rc=proc.returncode,
                cookies_configured=bool(self.cookies_path),
            )

        try:
            data = json.loads(stdout or "{}")
        except json.JSONDecodeError as e:
            raise ExtractionFailed(tool_message="yt-dlp produced invalid JSON", stderr=stderr) from e
        if not isinstance(data, dict):
            raise ExtractionFailed(tool_message="yt-dlp produced unexpected JSON", stderr=stderr)
        return data


# ---- Parsing -----------------------------------------------------------------
def parse_info_json(data: Dict[str, Any], *, video_id: str) -> ExtractionResult:
    formats = tuple(_parse_format(f) for f in (data.get("formats") or []) if isinstance(f, dict))
    return ExtractionResult(
        video_id=str(data.get("id") or video_id),
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        thumbnail_url=str(data.get("thumbnail") or ""),
        duration_seconds=_parse_int(data.get("duration")) or 0,
        view_count=_parse_int(data.get("view_count")) or 0,
        channel_id=str(data.get("channel_id") or ""),
        channel_title=str(data.get("channel") or ""),
        upload_date=str(data.get("upload_date") or ""),
        formats=formats,
    )


def _parse_format(f: Dict[str, Any]) -> CandidateFormat:
    return CandidateFormat(
        format_id=str(f.get("format_id") or ""),
        url=f.get("url") or None,
        ext=f.get("ext"),
        quality=str(f.get("format_note") or f.get("quality") or "unknown"),
        vcodec=f.get("vcodec"),
        acodec=f.get("acodec"),
        width=_parse_int(f.get("width")),
        height=_parse_int(f.get("height")),
        fps=_parse_float(f.get("fps")),
        abr=_parse_float(f.get("abr")),
        filesize=_parse_int(f.get("filesize") or f.get("filesize_approx")),
    )


# ---- tiny parse helpers -------------------------------------------------------
def _parse_float(x) -> Optional[float]:
    try:
        if x is None:
            return None
        return float(x)
    except (TypeError, ValueError):
        return None


def _parse_int(x) -> Optional[int]:
    try:
        if x is None:
            return None
        return int(float(x))
    except (TypeError, ValueError, OverflowError):
        return None
