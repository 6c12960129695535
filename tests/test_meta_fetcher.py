from __future__ import annotations

import httpx
import pytest

from logcache.common.errors import ConfigurationError, FetchError, ParseError
from logcache.meta.fetcher import MetaFetcher, derive_log_cache_url, parse_meta, resolve_log_cache_url
from tests.support import LOG_CACHE_URL, NEWEST_TIMESTAMP, OLDEST_TIMESTAMP


@pytest.mark.parametrize(
    ("api_url", "expected"),
    [
        ("https://api.sys.example.com", "https://log-cache.sys.example.com"),
        ("https://api.example.com:8443/", "https://log-cache.example.com:8443"),
        ("http://api.bosh-lite.com", "http://log-cache.bosh-lite.com"),
        ("api.example.com", "https://log-cache.example.com"),
    ],
)
def test_derive_log_cache_url(api_url: str, expected: str) -> None:
    assert derive_log_cache_url(api_url) == expected


def test_derive_requires_api_url() -> None:
    with pytest.raises(ConfigurationError, match="No API endpoint targeted."):
        derive_log_cache_url(None)


def test_log_cache_addr_takes_precedence() -> None:
    assert resolve_log_cache_url("https://different-log-cache:8080/", None) == "https://different-log-cache:8080"


def test_parse_meta_coerces_string_integers() -> None:
    statistics = parse_meta(
        '{"meta": {"source-1": {"count": "100000", "expired": "85008",'
        f' "oldestTimestamp": "{OLDEST_TIMESTAMP}", "newestTimestamp": "{NEWEST_TIMESTAMP}"}}}}}}'
    )
    stats = statistics["source-1"]
    assert stats.count == 100000
    assert stats.expired == 85008
    assert stats.cache_duration_ns == NEWEST_TIMESTAMP - OLDEST_TIMESTAMP


def test_parse_meta_defaults_missing_fields() -> None:
    statistics = parse_meta('{"meta": {"source-1": {}}}')
    assert statistics["source-1"].count == 0
    assert statistics["source-1"].cache_duration_ns == 0


def test_parse_meta_empty_body() -> None:
    assert parse_meta("{}") == {}


@pytest.mark.parametrize("body", ["not json", '{"meta": {"source-1": {"count": "many"}}}', '{"meta": []}'])
def test_parse_meta_rejects_malformed(body: str) -> None:
    with pytest.raises(ParseError):
        parse_meta(body)


@pytest.mark.asyncio
async def test_fetch_issues_single_request(foundation) -> None:
    foundation.add_sources("source-1", "source-2")
    async with httpx.AsyncClient(transport=foundation.transport()) as client:
        statistics = await MetaFetcher(client, LOG_CACHE_URL).fetch()

    assert set(statistics) == {"source-1", "source-2"}
    assert len(foundation.requests) == 1
    assert str(foundation.requests[0].url) == f"{LOG_CACHE_URL}/api/v1/meta"


@pytest.mark.asyncio
async def test_fetch_raises_on_bad_status(foundation) -> None:
    foundation.failures["/api/v1/meta"] = 400
    async with httpx.AsyncClient(transport=foundation.transport()) as client:
        with pytest.raises(FetchError, match="Expected 200 response code, but got 400."):
            await MetaFetcher(client, LOG_CACHE_URL).fetch()
