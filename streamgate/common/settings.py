# streamgate/common/settings.py
from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from streamgate.common.strings.splitters import blank_to_none, csv_to_list, first_non_empty

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


class APIConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    prefix: str = "/api"

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_methods: List[str] = Field(default_factory=lambda: ["GET", "HEAD", "OPTIONS"])
    cors_allow_headers: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = False

    @field_validator("cors_allow_origins", "cors_allow_methods", "cors_allow_headers", mode="before")
    @classmethod
    def _split_csv(cls, v):
        return csv_to_list(v)

    @computed_field  # type: ignore[misc]
    @property
    def youtube_prefix(self) -> str:
        return f"{self.prefix.rstrip('/')}/youtube"


class Settings(BaseSettings):
    # -------- App / Env --------
    app_name: str = "streamgate"
    app_env: str = "development"  # development|test|staging|production
    log_level: str = "INFO"

    api: APIConfig = APIConfig()

    # -------- Capability tokens --------
    # Unset/empty secret means open proxy mode: no tokens are minted or checked.
    stream_proxy_secret: Optional[str] = None
    stream_proxy_access_token: Optional[str] = None
    stream_proxy_ttl_seconds: int = Field(21600, ge=1)
    stream_proxy_clock_skew_seconds: int = Field(30, ge=0)

    # -------- Stream cache --------
    stream_cache_ttl_seconds: int = Field(5 * 60 * 60, ge=1)
    stream_cache_sweep_interval_seconds: int = Field(60 * 60, ge=1)

    # -------- Extraction tool --------
    ytdlp_bin: str = "yt-dlp"
    ytdlp_timeout_seconds: float = Field(15.0, gt=0)
    ytdlp_retries: int = Field(2, ge=0)
    ytdlp_download_base_url: str = "https://github.com/yt-dlp/yt-dlp/releases/latest/download"
    ytdlp_download_timeout_seconds: float = Field(60.0, gt=0)
    ytdlp_cache_dir: Path = Path(tempfile.gettempdir()) / "streamgate"
    ytdlp_cookies_path: Optional[Path] = None

    # -------- Outbound network --------
    https_proxy: Optional[str] = None
    http_proxy: Optional[str] = None
    upstream_user_agent: str = DEFAULT_USER_AGENT
    upstream_connect_timeout_seconds: float = Field(10.0, gt=0)
    upstream_read_timeout_seconds: float = Field(60.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "stream_proxy_secret",
        "stream_proxy_access_token",
        "https_proxy",
        "http_proxy",
        "ytdlp_cookies_path",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, v):
        return blank_to_none(v)

    @field_validator("ytdlp_download_base_url", mode="after")
    @classmethod
    def _strip_trailing_slashes(cls, v: str) -> str:
        return v.strip().rstrip("/")

    # ===== Derived =====
    @computed_field  # type: ignore[misc]
    @property
    def outbound_proxy(self) -> Optional[str]:
        return first_non_empty((self.https_proxy, self.http_proxy))

    @computed_field  # type: ignore[misc]
    @property
    def tokens_enabled(self) -> bool:
        return self.stream_proxy_secret is not None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Global settings accessor (cached). Use this everywhere you need config:
        from streamgate.common.settings import get_settings
        cfg = get_settings()
    """
    return Settings()  # pydantic_settings will read from .env automatically
