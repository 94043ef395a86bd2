# streamgate/services/api/deps.py
from __future__ import annotations

import hmac
from typing import Optional

import httpx
from fastapi import Depends, Request

from streamgate.common.settings import Settings
from streamgate.domain.exceptions import AuthenticationRequired
from streamgate.services.streams.links import ProxyLinkBuilder
from streamgate.services.streams.service import StreamService
from streamgate.services.tokens.capability import CapabilityTokenCodec

STREAM_TOKEN_HEADER = "X-Stream-Token"
DEBUG_HEADER = "X-Stream-Debug"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_stream_service(request: Request) -> StreamService:
    """The app-wide StreamService built in create_app(). Override in tests."""
    return request.app.state.stream_service


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_token_codec(request: Request) -> Optional[CapabilityTokenCodec]:
    """None means open proxy mode (no secret configured)."""
    return request.app.state.token_codec


def request_base_url(request: Request, cfg: Settings) -> str:
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    proto = proto.split(",")[0].strip()
    host = request.headers.get("host") or f"localhost:{cfg.api.port}"
    return f"{proto}://{host}{cfg.api.youtube_prefix}"


def get_link_builder(
    request: Request,
    cfg: Settings = Depends(get_app_settings),
    codec: Optional[CapabilityTokenCodec] = Depends(get_token_codec),
) -> ProxyLinkBuilder:
    return ProxyLinkBuilder(request_base_url(request, cfg), codec, cfg.stream_proxy_ttl_seconds)


async def reject_unauthenticated(request: Request) -> None:
    """
    Default user authenticator. The stream service has no user store of its
    own; deployments behind user auth pass their own to create_app().
    """
    raise AuthenticationRequired()


async def authorize_stream_request(request: Request, cfg: Settings = Depends(get_app_settings)) -> None:
    """
    Minting proxy links is only restricted when the deployment has a signing
    secret or an access token configured; otherwise /stream is open.
    """
    if cfg.stream_proxy_secret is None and cfg.stream_proxy_access_token is None:
        return
    if cfg.stream_proxy_access_token is not None:
        provided = request.headers.get(STREAM_TOKEN_HEADER)
        if provided and hmac.compare_digest(
            provided.encode("utf-8"), cfg.stream_proxy_access_token.encode("utf-8")
        ):
            return
    await request.app.state.user_authenticator(request)


def wants_debug(request: Request) -> bool:
    return request.headers.get(DEBUG_HEADER) == "1" or request.query_params.get("debug") == "1"
