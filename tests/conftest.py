# tests/conftest.py
from __future__ import annotations

from typing import Callable, Dict

import pytest

from fakes import FakeClock
from streamgate.common.settings import Settings, get_settings


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    """Settings isolated from the process env/.env for the keys tests care about."""
    def _make(**overrides) -> Settings:
        base: Dict[str, object] = dict(
            app_env="test",
            stream_proxy_secret=None,
            stream_proxy_access_token=None,
            https_proxy=None,
            http_proxy=None,
        )
        base.update(overrides)
        return Settings(_env_file=None, **base)
    return _make


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
