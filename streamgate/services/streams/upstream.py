# streamgate/services/streams/upstream.py
from __future__ import annotations

from typing import AsyncIterator, Dict, Optional

import httpx

from streamgate.common.logging import get_logger
from streamgate.domain.enums.media_kind import MediaKind
from streamgate.domain.exceptions import UpstreamFetchFailed

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPES: Dict[MediaKind, str] = {
    MediaKind.video: "video/mp4",
    MediaKind.audio: "audio/mp4",
}

# copied verbatim from the upstream response when present
FORWARDED_HEADERS = ("Content-Length", "Content-Range", "Accept-Ranges")


def _passthrough_status(status: int) -> bool:
    # 416 tells the player its seek is out of range; worth forwarding as-is
    return 200 <= status < 300 or status == 416


def build_client(
    *,
    proxy: Optional[str],
    connect_timeout: float = 10.0,
    read_timeout: float = 60.0,
) -> httpx.AsyncClient:
    """Shared client for upstream media fetches (one per app)."""
    return httpx.AsyncClient(
        proxy=proxy,
        follow_redirects=True,
        timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
        trust_env=False,
    )


async def open_upstream(
    client: httpx.AsyncClient,
    url: str,
    *,
    user_agent: str,
    range_header: Optional[str] = None,
) -> httpx.Response:
    """
    Start a streaming GET against the resolved media URL. The caller owns the
    returned response and must close it (relay_body does so).
    """
    headers = {
        "User-Agent": user_agent,
        # bytes are relayed raw, so never let upstream compress them
        "Accept-Encoding": "identity",
    }
    if range_header:
        headers["Range"] = range_header

    request = client.build_request("GET", url, headers=headers)
    try:
        resp = await client.send(request, stream=True)
    except httpx.HTTPError as e:
        logger.warning("Upstream fetch failed: %s", type(e).__name__)
        raise UpstreamFetchFailed() from e

    if not _passthrough_status(resp.status_code):
        logger.warning("Upstream answered %d; not forwarding", resp.status_code)
        await resp.aclose()
        raise UpstreamFetchFailed()
    return resp


def response_headers(upstream: httpx.Response, kind: MediaKind) -> Dict[str, str]:
    headers = {
        "Content-Type": upstream.headers.get("Content-Type") or DEFAULT_CONTENT_TYPES[kind],
        "Access-Control-Allow-Origin": "*",
        "Cache-Control": "no-cache",
    }
    for name in FORWARDED_HEADERS:
        value = upstream.headers.get(name)
        if value:
            headers[name] = value
    return headers


async def relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """
    Yield upstream bytes unchanged and close the upstream when done or
    cancelled. `Response.aclose()` is idempotent, so the proxy route also
    closes it from a background task after the response ends.
    """
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        logger.warning("Upstream stream interrupted: %s", type(e).__name__)
        raise
    finally:
        await upstream.aclose()
