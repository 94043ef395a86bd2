# streamgate/services/api/routers/streams.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query

from streamgate.domain.enums.media_kind import StreamType
from streamgate.domain.exceptions import NoPlayableStream
from streamgate.services.api.deps import authorize_stream_request, get_link_builder, get_stream_service
from streamgate.services.schemas.streams import StreamLinksResponse, VideoInfo, VideoInfoResponse
from streamgate.services.streams.links import ProxyLinkBuilder
from streamgate.services.streams.service import StreamService

VIDEO_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"

router = APIRouter(tags=["streams"])


@router.get(
    "/stream/{video_id}",
    response_model=StreamLinksResponse,
    response_model_exclude_unset=True,
    dependencies=[Depends(authorize_stream_request)],
)
async def get_stream(
    video_id: str = Path(..., pattern=VIDEO_ID_PATTERN),
    stream_type: StreamType = Query(StreamType.both, alias="type"),
    svc: StreamService = Depends(get_stream_service),
    links: ProxyLinkBuilder = Depends(get_link_builder),
) -> StreamLinksResponse:
    rec = await svc.resolve(video_id)

    urls = {}
    for kind in stream_type.kinds():
        urls[f"{kind.value}_url"] = links.link(video_id, kind) if rec.url_for(kind) else None
    if not any(urls.values()):
        raise NoPlayableStream()

    return StreamLinksResponse(
        title=rec.title,
        duration=rec.duration_seconds,
        thumbnail_url=rec.thumbnail_url,
        **urls,
    )


@router.get("/video/{video_id}", response_model=VideoInfoResponse)
async def get_video_info(
    video_id: str = Path(..., pattern=VIDEO_ID_PATTERN),
    svc: StreamService = Depends(get_stream_service),
) -> VideoInfoResponse:
    info = await svc.video_info(video_id)
    return VideoInfoResponse(video=VideoInfo.from_result(info))
