# tests/services/api/test_proxy_api.py
from __future__ import annotations

import asyncio

from fakes import FakeExtractor, UpstreamRecorder, fmt, sample_result
from streamgate.domain.entities.extraction import ExtractionResult
from streamgate.domain.exceptions import ExtractionNotFound
from streamgate.services.api.app import create_app
from streamgate.services.cache.stream_cache import StreamCache
from streamgate.services.streams.service import StreamService

VID = "dQw4w9WgXcQ"
SECRET = "test-secret"
PROXY = f"/api/youtube/proxy/{VID}"


async def _allow(request) -> None:
    return None


def _signed(h, kind: str, exp_offset: int = 3600) -> dict:
    codec = h.app.state.token_codec
    exp = codec.now() + exp_offset
    return {"type": kind, "exp": str(exp), "sig": codec.mint(VID, kind, exp)}


def test_signed_link_relays_range_request(api):
    h = api(stream_proxy_secret=SECRET, user_authenticator=_allow)
    link = h.client.get(f"/api/youtube/stream/{VID}").json()["videoUrl"]

    r = h.client.get(link, headers={"Range": "bytes=100-199"})

    assert r.status_code == 206
    assert r.headers["content-range"] == "bytes 100-199/1000"
    assert r.headers["content-length"] == "100"
    assert r.headers["accept-ranges"] == "bytes"
    assert r.headers["content-type"] == "video/mp4"
    assert r.headers["cache-control"] == "no-cache"
    assert r.headers["access-control-allow-origin"] == "*"
    assert r.content == h.upstream.body[100:200]

    sent = h.upstream.requests[-1]
    assert str(sent.url) == "https://upstream.example/22"
    assert sent.headers["range"] == "bytes=100-199"
    assert sent.headers["accept-encoding"] == "identity"
    assert sent.headers["user-agent"] == h.app.state.settings.upstream_user_agent
    assert h.upstream.streams[-1].closed


def test_full_body_without_range(api):
    h = api()

    r = h.client.get(PROXY, params={"type": "audio"})

    assert r.status_code == 200
    assert r.content == h.upstream.body
    assert h.upstream.streams[-1].closed
    assert str(h.upstream.requests[-1].url) == "https://upstream.example/140"
    assert "range" not in h.upstream.requests[-1].headers


def test_missing_token_is_401(api):
    h = api(stream_proxy_secret=SECRET)

    r = h.client.get(PROXY, params={"type": "video"})

    assert r.status_code == 401
    assert r.json() == {"error": "Missing stream token"}
    assert h.extractor.calls == []


def test_expired_token_is_401(api):
    h = api(stream_proxy_secret=SECRET)

    r = h.client.get(PROXY, params=_signed(h, "video", exp_offset=-3600))

    assert r.status_code == 401
    assert r.json() == {"error": "Expired stream token"}


def test_token_inside_skew_window_is_accepted(api):
    h = api(stream_proxy_secret=SECRET)
    assert h.client.get(PROXY, params=_signed(h, "video", exp_offset=-5)).status_code == 200


def test_tampered_or_misused_token_is_403(api):
    h = api(stream_proxy_secret=SECRET)

    bad_sig = dict(_signed(h, "video"), sig="A" * 43)
    other_kind = dict(_signed(h, "video"), type="audio")
    other_video = _signed(h, "video")

    assert h.client.get(PROXY, params=bad_sig).status_code == 403
    assert h.client.get(PROXY, params=other_kind).status_code == 403
    r = h.client.get("/api/youtube/proxy/otherVideo1", params=other_video)
    assert r.status_code == 403
    assert r.json() == {"error": "Invalid stream token"}
    assert h.upstream.requests == []


def test_malformed_exp_is_rejected_as_expired(api):
    h = api(stream_proxy_secret=SECRET)
    params = dict(_signed(h, "video"), exp="soon")
    assert h.client.get(PROXY, params=params).status_code == 401


def test_overlong_exp_is_rejected_as_expired(api):
    h = api(stream_proxy_secret=SECRET)

    r = h.client.get(PROXY, params={"type": "video", "exp": "9" * 5000, "sig": "x" * 43})

    assert r.status_code == 401
    assert r.json() == {"error": "Expired stream token"}
    assert h.upstream.requests == []


def test_open_mode_needs_no_token(api):
    h = api()
    assert h.client.get(PROXY, params={"type": "video"}).status_code == 200


def test_kind_without_upstream_url_is_404(api):
    result = ExtractionResult(video_id=VID, formats=(fmt("137", acodec="none", height=1080),))
    h = api(extractor=FakeExtractor(result))

    r = h.client.get(PROXY, params={"type": "audio"})

    assert r.status_code == 404
    assert r.json() == {"error": "No stream URL found"}


def test_unknown_video_is_404(api):
    h = api(extractor=FakeExtractor(error=ExtractionNotFound()))
    assert h.client.get(PROXY, params={"type": "video"}).status_code == 404


def test_upstream_rejection_is_500(api):
    h = api(upstream=UpstreamRecorder(status=403))

    r = h.client.get(PROXY, params={"type": "video"})

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to proxy stream"}
    assert "upstream.example" not in r.text
    assert h.upstream.streams[-1].closed


def test_range_not_satisfiable_passes_through(api):
    h = api(upstream=UpstreamRecorder(status=416))
    r = h.client.get(PROXY, params={"type": "video"}, headers={"Range": "bytes=5000-"})
    assert r.status_code == 416


def test_default_content_type_per_kind(api):
    h = api(upstream=UpstreamRecorder(content_type=None))

    audio = h.client.get(PROXY, params={"type": "audio"})
    video = h.client.get(PROXY, params={"type": "video"})

    assert audio.headers["content-type"] == "audio/mp4"
    assert video.headers["content-type"] == "video/mp4"


def test_invalid_kind_is_400(api):
    h = api()
    assert h.client.get(PROXY, params={"type": "both"}).status_code == 400


def test_client_disconnect_closes_upstream_and_keeps_cache(make_settings):
    upstream = UpstreamRecorder(stall_after_first=True)
    svc = StreamService(FakeExtractor(sample_result()), StreamCache(ttl_sec=3600))
    app = create_app(make_settings(), stream_service=svc, http_client=upstream.client())

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": PROXY,
        "raw_path": PROXY.encode(),
        "root_path": "",
        "query_string": b"type=video",
        "headers": [(b"host", b"testserver")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    sent = []

    async def main():
        first_chunk = asyncio.Event()
        request_delivered = False

        async def receive():
            nonlocal request_delivered
            if not request_delivered:
                request_delivered = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await first_chunk.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            sent.append(message)
            if message["type"] == "http.response.body" and message.get("body"):
                first_chunk.set()

        await asyncio.wait_for(app(scope, receive, send), timeout=5)

    asyncio.run(main())

    assert sent[0]["type"] == "http.response.start"
    assert sent[0]["status"] == 200
    bodies = [m for m in sent if m["type"] == "http.response.body"]
    assert bodies[0]["body"] == upstream.body[:256]
    assert not any(m.get("more_body") is False for m in bodies)
    assert upstream.streams[-1].closed
    assert upstream.streams[-1].chunks_sent == 1
    assert svc.cache.peek(VID) is not None
