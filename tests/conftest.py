from __future__ import annotations

from typing import Callable

import pytest

from logcache.common.settings import LogCacheSettings
from tests.support import API_URL, FakeFoundation


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    for name in (
        "LOG_CACHE_ADDR",
        "LOG_CACHE_SKIP_AUTH",
        "LOG_CACHE_API_URL",
        "LOG_CACHE_TOKEN",
        "LOG_CACHE_USERNAME",
        "LOG_CACHE_HTTP_TIMEOUT",
        "LOG_CACHE_DEADLINE",
        "LOG_CACHE_RATE_WINDOW",
        "LOG_CACHE_MAX_CONCURRENCY",
        "LOG_CACHE_LOG_LEVEL",
        "LOG_CACHE_OTEL_EXPORTER_ENDPOINT",
        "LOG_CACHE_OTEL_EXPORTER_HEADERS",
        "LOG_CACHE_OTEL_SAMPLER_RATIO",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def foundation() -> FakeFoundation:
    return FakeFoundation()


@pytest.fixture
def settings_factory() -> Callable[..., LogCacheSettings]:
    def _build(**overrides) -> LogCacheSettings:
        values = {"api_url": API_URL, "access_token": "bearer-token", "username": "a-user"}
        values.update(overrides)
        return LogCacheSettings(**values)

    return _build


