"""Retrieve per-source storage statistics from Log Cache."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog
from opentelemetry import trace
from pydantic import ValidationError

from ..common.errors import ConfigurationError, FetchError, ParseError
from ..common.http import get_text
from ..common.schemas import MetaResponse, SourceStatistics

LOGGER = structlog.get_logger("logcache.meta.fetcher")
TRACER = trace.get_tracer("logcache.meta.fetcher")

META_PATH = "/api/v1/meta"


def derive_log_cache_url(api_url: Optional[str]) -> str:
    """Map a registry URL such as ``https://api.sys.example.com`` to its Log Cache URL."""

    if not api_url:
        raise ConfigurationError("No API endpoint targeted.")
    parts = urlsplit(api_url if "://" in api_url else f"https://{api_url}")
    hostname = parts.hostname
    if not hostname:
        raise ConfigurationError(f"invalid API endpoint {api_url!r}")
    labels = hostname.split(".")
    if len(labels) > 1:
        labels[0] = "log-cache"
    else:
        labels.insert(0, "log-cache")
    netloc = ".".join(labels)
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, "", "", ""))


def resolve_log_cache_url(log_cache_addr: Optional[str], api_url: Optional[str]) -> str:
    if log_cache_addr:
        return log_cache_addr.rstrip("/")
    return derive_log_cache_url(api_url)


def parse_meta(body: str) -> dict[str, SourceStatistics]:
    try:
        payload = MetaResponse.model_validate_json(body)
    except ValidationError as exc:
        raise ParseError(f"malformed meta response: {exc.error_count()} validation error(s)") from exc
    return {
        source_id: SourceStatistics.from_meta(source_id, info)
        for source_id, info in payload.meta.items()
    }


class MetaFetcher:
    """Issues a single ``/api/v1/meta`` request against Log Cache."""

    def __init__(self, http: httpx.AsyncClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self._base_url}{META_PATH}"

    async def fetch(self) -> dict[str, SourceStatistics]:
        with TRACER.start_as_current_span("logcache.meta.fetch") as span:
            body = await get_text(self._http, self.url, error_cls=FetchError)
            statistics = parse_meta(body)
            span.set_attribute("logcache.sources", len(statistics))
        LOGGER.debug("Fetched source statistics", url=self.url, sources=len(statistics))
        return statistics
