# streamgate/services/extraction/fallback_binary.py
from __future__ import annotations

import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from streamgate.common.concurrency.single_flight import SingleFlight
from streamgate.common.logging import get_logger
from streamgate.domain.exceptions import DownloadFailed

logger = get_logger(__name__)

ClientFactory = Callable[[Optional[str]], httpx.AsyncClient]


def asset_name_for(system: Optional[str] = None, machine: Optional[str] = None) -> Optional[str]:
    """Self-contained yt-dlp release asset for an OS/arch, or None if there is none."""
    system = system if system is not None else sys.platform
    machine = (machine if machine is not None else platform.machine()).lower()
    if system.startswith("win"):
        return "yt-dlp.exe"
    if system == "darwin":
        return "yt-dlp_macos"
    if system.startswith("linux"):
        if machine in ("aarch64", "arm64"):
            return "yt-dlp_linux_aarch64"
        return "yt-dlp_linux"
    return None


def _default_client_factory(proxy: Optional[str], timeout_sec: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        proxy=proxy,
        follow_redirects=True,
        timeout=timeout_sec,
        trust_env=False,
    )


class FallbackBinaryInstaller:
    """
    Downloads a standalone yt-dlp build into a local cache directory.

    `ensure()` is single-flighted: however many resolutions hit an environment
    failure at once, only one download runs and every caller gets its outcome.
    A failed download leaves nothing cached, so a later call may try again.
    """

    def __init__(
        self,
        *,
        base_url: str,
        cache_dir: Path,
        proxy: Optional[str] = None,
        timeout_sec: float = 60.0,
        asset_name: Optional[str] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.base_url = base_url.strip().rstrip("/")
        self.cache_dir = Path(cache_dir)
        self.proxy = proxy
        self.timeout_sec = timeout_sec
        self.asset_name = asset_name if asset_name is not None else asset_name_for()
        self._client_factory = client_factory or (lambda p: _default_client_factory(p, self.timeout_sec))
        self._flight: SingleFlight[str, Path] = SingleFlight("ytdlp-download")

    @property
    def target_path(self) -> Optional[Path]:
        if not self.asset_name:
            return None
        return self.cache_dir / self.asset_name

    @property
    def download_url(self) -> Optional[str]:
        if not self.asset_name:
            return None
        return f"{self.base_url}/{self.asset_name}"

    async def ensure(self) -> Path:
        """Return the path of an executable fallback binary, downloading it once."""
        if self.target_path is None:
            raise DownloadFailed(f"Unsupported platform for yt-dlp binary ({sys.platform})")
        return await self._flight.do("install", self._install)

    async def _install(self) -> Path:
        target = self.target_path
        assert target is not None and self.download_url is not None
        if target.is_file():
            logger.info("Using cached fallback yt-dlp at %s", target)
            return target

        # proxied first (when configured), then a direct connection
        attempts: List[Optional[str]] = [self.proxy, None] if self.proxy else [None]
        last_error: Optional[Exception] = None
        for proxy in attempts:
            try:
                await self._download_to(target, proxy=proxy)
                logger.info("Installed fallback yt-dlp to %s", target)
                return target
            except (httpx.HTTPError, OSError) as e:
                last_error = e
                logger.warning(
                    "Fallback yt-dlp download failed (%s): %s",
                    "proxied" if proxy else "direct",
                    e,
                )
        if isinstance(last_error, httpx.HTTPStatusError):
            raise DownloadFailed(
                f"Failed to download yt-dlp ({last_error.response.status_code})"
            ) from last_error
        raise DownloadFailed("Failed to download yt-dlp") from last_error

    async def _download_to(self, target: Path, *, proxy: Optional[str]) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
        tmp = Path(tmp_name)
        try:
            async with self._client_factory(proxy) as client:
                async with client.stream("GET", self.download_url) as resp:
                    resp.raise_for_status()
                    with os.fdopen(fd, "wb") as fh:
                        fd = -1
                        async for chunk in resp.aiter_bytes():
                            fh.write(chunk)
            tmp.chmod(0o755)
            os.replace(tmp, target)
        finally:
            if fd != -1:
                os.close(fd)
            if tmp.exists():
                tmp.unlink()
