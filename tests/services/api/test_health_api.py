# tests/services/api/test_health_api.py
from __future__ import annotations

from streamgate.common.settings import APIConfig


def test_health_on_both_paths(api):
    h = api(app_name="streamgate-test")

    for path in ("/health", "/api/health"):
        r = h.client.get(path)
        assert r.status_code == 200
        assert r.json() == {"status": "ok", "app": "streamgate-test", "env": "test"}


def test_unknown_route_uses_error_body(api):
    h = api()
    r = h.client.get("/api/youtube/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_health_needs_no_auth(api):
    h = api(stream_proxy_secret="s", stream_proxy_access_token="t")
    assert h.client.get("/health").status_code == 200


def test_health_follows_api_prefix(api):
    h = api(api=APIConfig(prefix="/v2/"))

    assert h.client.get("/v2/health").status_code == 200
    assert h.client.get("/health").status_code == 200
    assert h.client.get("/api/health").status_code == 404
