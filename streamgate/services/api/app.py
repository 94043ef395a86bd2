from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from streamgate.common.logging import configure_logging, get_logger
from streamgate.common.settings import Settings, get_settings
from streamgate.services.api.deps import reject_unauthenticated
from streamgate.services.api.errors import install_error_handlers
from streamgate.services.api.routers import health, proxy, streams
from streamgate.services.streams.service import StreamService, build_stream_service
from streamgate.services.streams.upstream import build_client
from streamgate.services.tokens.capability import CapabilityTokenCodec

logger = get_logger(__name__)

UserAuthenticator = Callable[[Request], Awaitable[None]]


def build_token_codec(cfg: Settings) -> Optional[CapabilityTokenCodec]:
    if cfg.stream_proxy_secret is None:
        logger.warning("STREAM_PROXY_SECRET is not set: /proxy runs in open mode without stream tokens")
        return None
    return CapabilityTokenCodec(cfg.stream_proxy_secret, clock_skew_sec=cfg.stream_proxy_clock_skew_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    svc: StreamService = app.state.stream_service
    sweeper = asyncio.create_task(svc.cache.run_sweeper(cfg.stream_cache_sweep_interval_seconds))
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await app.state.http_client.aclose()


def create_app(
    settings: Optional[Settings] = None,
    *,
    stream_service: Optional[StreamService] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    user_authenticator: UserAuthenticator = reject_unauthenticated,
) -> FastAPI:
    cfg = settings or get_settings()
    configure_logging(cfg.log_level)
    dev = cfg.app_env.lower() == "development"

    app = FastAPI(
        title="Streamgate API",
        version="0.1.0",
        docs_url=f"{cfg.api.prefix}/docs",
        openapi_url=f"{cfg.api.prefix}/openapi.json",
        lifespan=lifespan,
    )

    # One long-lived owner for every piece of shared mutable state
    app.state.settings = cfg
    app.state.stream_service = stream_service or build_stream_service(cfg)
    app.state.token_codec = build_token_codec(cfg)
    app.state.http_client = http_client or build_client(
        proxy=cfg.outbound_proxy,
        connect_timeout=cfg.upstream_connect_timeout_seconds,
        read_timeout=cfg.upstream_read_timeout_seconds,
    )
    app.state.user_authenticator = user_authenticator

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if dev else cfg.api.cors_allow_origins,
        allow_methods=cfg.api.cors_allow_methods,
        allow_headers=cfg.api.cors_allow_headers,
        allow_credentials=cfg.api.cors_allow_credentials,
        expose_headers=["Content-Length", "Content-Range", "Accept-Ranges"],
    )

    install_error_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(health.router, prefix=cfg.api.prefix.rstrip("/"))
    app.include_router(streams.router, prefix=cfg.api.youtube_prefix)
    app.include_router(proxy.router, prefix=cfg.api.youtube_prefix)
    return app
