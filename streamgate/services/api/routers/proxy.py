# streamgate/services/api/routers/proxy.py
from __future__ import annotations

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Header, Path, Query
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from streamgate.common.settings import Settings
from streamgate.domain.enums.media_kind import MediaKind
from streamgate.domain.exceptions import StreamNotFound
from streamgate.services.api.deps import get_app_settings, get_http_client, get_stream_service, get_token_codec
from streamgate.services.api.routers.streams import VIDEO_ID_PATTERN
from streamgate.services.streams.service import StreamService
from streamgate.services.streams.upstream import open_upstream, relay_body, response_headers
from streamgate.services.tokens.capability import CapabilityTokenCodec

router = APIRouter(tags=["proxy"])


@router.get("/proxy/{video_id}")
async def proxy_stream(
    video_id: str = Path(..., pattern=VIDEO_ID_PATTERN),
    kind: MediaKind = Query(MediaKind.video, alias="type"),
    exp: Optional[str] = Query(None),
    sig: Optional[str] = Query(None),
    range_header: Optional[str] = Header(None, alias="Range"),
    svc: StreamService = Depends(get_stream_service),
    client: httpx.AsyncClient = Depends(get_http_client),
    codec: Optional[CapabilityTokenCodec] = Depends(get_token_codec),
    cfg: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """
    Relay media bytes for one (video, kind). The only place a resolved upstream
    URL is ever dereferenced. Range requests pass straight through, so the
    upstream decides between 200 and 206.
    """
    if codec is not None:
        codec.authorize(video_id, kind, exp, sig)

    rec = await svc.resolve(video_id)
    url = rec.url_for(kind)
    if not url:
        raise StreamNotFound()

    upstream = await open_upstream(client, url, user_agent=cfg.upstream_user_agent, range_header=range_header)
    return StreamingResponse(
        relay_body(upstream),
        status_code=upstream.status_code,
        headers=response_headers(upstream, kind),
        # also runs when the client disconnects before the body iterator starts
        background=BackgroundTask(upstream.aclose),
    )
