# tests/services/conftest.py
from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from fakes import FakeExtractor, UpstreamRecorder, sample_result
from streamgate.services.api.app import create_app
from streamgate.services.cache.stream_cache import StreamCache
from streamgate.services.streams.service import StreamService



@dataclass
class ApiHarness:
    app: FastAPI
    client: TestClient
    extractor: FakeExtractor
    upstream: UpstreamRecorder


@pytest.fixture()
def api(make_settings) -> Callable[..., ApiHarness]:
    """
    Build an app around a FakeExtractor and a MockTransport upstream, and open
    a TestClient on it (lifespan included). Settings overrides go in **cfg.
    """
    stack = ExitStack()

    def _build(
        *,
        extractor: Optional[FakeExtractor] = None,
        upstream: Optional[UpstreamRecorder] = None,
        user_authenticator: Any = None,
        **cfg: Any,
    ) -> ApiHarness:
        extractor = extractor or FakeExtractor(sample_result())
        upstream = upstream or UpstreamRecorder()
        kw = {}
        if user_authenticator is not None:
            kw["user_authenticator"] = user_authenticator
        app = create_app(
            make_settings(**cfg),
            stream_service=StreamService(extractor, StreamCache(ttl_sec=3600)),
            http_client=upstream.client(),
            **kw,
        )
        client = stack.enter_context(TestClient(app))
        return ApiHarness(app=app, client=client, extractor=extractor, upstream=upstream)

    with stack:
        yield _build
