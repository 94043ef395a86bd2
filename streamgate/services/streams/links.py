# streamgate/services/streams/links.py
from __future__ import annotations

from typing import Optional
from urllib.parse import quote, urlencode

from streamgate.domain.enums.media_kind import MediaKind
from streamgate.services.tokens.capability import CapabilityTokenCodec


class ProxyLinkBuilder:
    """
    Builds the proxy URLs handed to clients in place of raw upstream URLs.

    With a codec each link carries its own `exp`/`sig`; without one (open
    proxy mode) only `type` is set.
    """

    def __init__(self, base_url: str, codec: Optional[CapabilityTokenCodec], ttl_sec: int) -> None:
        self.base_url = base_url.rstrip("/")
        self.codec = codec
        self.ttl_sec = ttl_sec

    def link(self, video_id: str, kind: MediaKind) -> str:
        path = f"{self.base_url}/proxy/{quote(video_id, safe='')}"
        if self.codec is None:
            return f"{path}?{urlencode({'type': kind.value})}"
        token = self.codec.issue(video_id, kind, self.ttl_sec)
        return f"{path}?{urlencode(token.as_query())}"
