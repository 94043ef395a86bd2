# tests/services/api/test_stream_api.py
from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from fakes import FakeExtractor, fmt
from streamgate.domain.entities.extraction import ExtractionResult
from streamgate.domain.enums.media_kind import MediaKind
from streamgate.domain.exceptions import BotCheckRequired, ExtractionNotFound, LiveNotStarted

VID = "dQw4w9WgXcQ"
SECRET = "test-secret"


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


async def _allow(request) -> None:
    return None


def test_stream_returns_signed_proxy_links(api):
    h = api(stream_proxy_secret=SECRET, user_authenticator=_allow)

    r = h.client.get(f"/api/youtube/stream/{VID}")

    assert r.status_code == 200, r.text
    body = r.json()
    assert set(body) == {"title", "duration", "thumbnailUrl", "videoUrl", "audioUrl"}
    assert body["title"] == "Sample Clip"
    assert body["duration"] == 212
    assert body["thumbnailUrl"] == "https://i.example/thumb.jpg"

    codec = h.app.state.token_codec
    for kind, key in ((MediaKind.video, "videoUrl"), (MediaKind.audio, "audioUrl")):
        url = body[key]
        assert urlsplit(url).path == f"/api/youtube/proxy/{VID}"
        assert "upstream.example" not in url
        q = _query(url)
        assert q["type"] == kind.value
        assert codec.verify(VID, kind, q["exp"], q["sig"])
        assert int(q["exp"]) > codec.now()


def test_stream_link_uses_forwarded_proto(api):
    h = api(stream_proxy_secret=SECRET, user_authenticator=_allow)
    r = h.client.get(f"/api/youtube/stream/{VID}", headers={"X-Forwarded-Proto": "https"})
    assert r.json()["videoUrl"].startswith("https://testserver/api/youtube/proxy/")


def test_open_mode_links_carry_only_type(api):
    h = api()

    body = h.client.get(f"/api/youtube/stream/{VID}").json()

    assert _query(body["videoUrl"]) == {"type": "video"}
    assert _query(body["audioUrl"]) == {"type": "audio"}


def test_requested_type_limits_payload(api):
    h = api()

    video_only = h.client.get(f"/api/youtube/stream/{VID}", params={"type": "video"}).json()
    audio_only = h.client.get(f"/api/youtube/stream/{VID}", params={"type": "audio"}).json()

    assert "videoUrl" in video_only and "audioUrl" not in video_only
    assert "audioUrl" in audio_only and "videoUrl" not in audio_only


def test_missing_kind_is_null_when_other_kind_present(api):
    result = ExtractionResult(
        video_id=VID,
        title="Silent",
        formats=(fmt("137", acodec="none", height=1080),),
    )
    h = api(extractor=FakeExtractor(result))

    body = h.client.get(f"/api/youtube/stream/{VID}").json()

    assert body["videoUrl"] is not None
    assert body["audioUrl"] is None


def test_nothing_playable_for_requested_kind_is_404(api):
    result = ExtractionResult(
        video_id=VID,
        formats=(fmt("137", acodec="none", height=1080),),
    )
    h = api(extractor=FakeExtractor(result))

    r = h.client.get(f"/api/youtube/stream/{VID}", params={"type": "audio"})

    assert r.status_code == 404
    assert r.json() == {"error": "No playable streams found"}


def test_resolution_is_cached_across_requests(api):
    h = api()
    h.client.get(f"/api/youtube/stream/{VID}")
    h.client.get(f"/api/youtube/stream/{VID}", params={"type": "audio"})
    assert h.extractor.calls == [VID]


def test_unknown_video_is_404_and_mints_nothing(api, monkeypatch):
    h = api(
        extractor=FakeExtractor(error=ExtractionNotFound(tool_message="Video unavailable")),
        stream_proxy_secret=SECRET,
        user_authenticator=_allow,
    )
    issued = []
    codec = h.app.state.token_codec
    real_issue = codec.issue
    monkeypatch.setattr(codec, "issue", lambda *a, **k: issued.append(a) or real_issue(*a, **k))

    r = h.client.get(f"/api/youtube/stream/{VID}")

    assert r.status_code == 404
    assert r.json() == {"error": "Video not found"}
    assert issued == []


def test_debug_header_exposes_tool_message(api):
    h = api(extractor=FakeExtractor(error=ExtractionNotFound(tool_message="Video unavailable")))

    plain = h.client.get(f"/api/youtube/stream/{VID}")
    debug = h.client.get(f"/api/youtube/stream/{VID}", headers={"X-Stream-Debug": "1"})
    debug_q = h.client.get(f"/api/youtube/stream/{VID}", params={"debug": "1"})

    assert "details" not in plain.json()
    assert debug.json()["details"] == "Video unavailable"
    assert debug_q.json()["details"] == "Video unavailable"


def test_bot_check_maps_to_503_with_code(api):
    h = api(extractor=FakeExtractor(error=BotCheckRequired(tool_message="Sign in to confirm you're not a bot")))

    r = h.client.get(f"/api/youtube/stream/{VID}")

    assert r.status_code == 503
    assert r.json()["code"] == "YOUTUBE_BOT_CHECK"
    assert "cookies" in r.json()["error"].lower()


def test_live_not_started_is_409(api):
    h = api(extractor=FakeExtractor(error=LiveNotStarted("This live event will begin in 2 hours.")))

    r = h.client.get(f"/api/youtube/stream/{VID}")

    assert r.status_code == 409
    assert r.json() == {"error": "This live event will begin in 2 hours.", "code": "LIVE_NOT_STARTED"}


def test_access_token_gates_link_minting(api):
    h = api(stream_proxy_secret=SECRET, stream_proxy_access_token="letmein")

    assert h.client.get(f"/api/youtube/stream/{VID}").status_code == 401
    wrong = h.client.get(f"/api/youtube/stream/{VID}", headers={"X-Stream-Token": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Authentication required"}

    ok = h.client.get(f"/api/youtube/stream/{VID}", headers={"X-Stream-Token": "letmein"})
    assert ok.status_code == 200


def test_user_authenticator_is_consulted_without_access_token(api):
    seen = []

    async def auth(request):
        seen.append(request.url.path)

    h = api(stream_proxy_secret=SECRET, user_authenticator=auth)

    assert h.client.get(f"/api/youtube/stream/{VID}").status_code == 200
    assert seen == [f"/api/youtube/stream/{VID}"]


def test_invalid_type_and_id_are_400(api):
    h = api()

    bad_type = h.client.get(f"/api/youtube/stream/{VID}", params={"type": "subtitles"})
    bad_id = h.client.get("/api/youtube/stream/bad$id")

    assert bad_type.status_code == 400
    assert bad_type.json() == {"error": "Invalid request"}
    assert bad_id.status_code == 400


def test_video_info_lists_formats_without_urls(api):
    h = api()

    r = h.client.get(f"/api/youtube/video/{VID}")

    assert r.status_code == 200
    video = r.json()["video"]
    assert video["id"] == VID
    assert video["thumbnailUrl"] == "https://i.example/thumb.jpg"
    assert [f["formatId"] for f in video["formats"]] == ["18", "22", "137", "140", "251"]
    assert all("url" not in f for f in video["formats"])
    assert "upstream.example" not in r.text


def test_video_info_is_not_cached(api):
    h = api()
    h.client.get(f"/api/youtube/video/{VID}")
    h.client.get(f"/api/youtube/video/{VID}")
    assert h.extractor.calls == [VID, VID]

