"""Metadata aggregation pipeline: fetch, resolve, sample, filter, render."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx
import jwt
import structlog

from ..common.errors import (
    ENDPOINT_STAGE,
    IDENTITY_STAGE,
    META_STAGE,
    REGISTRY_STAGE,
    ConfigurationError,
    IdentityError,
    RequestTimeoutError,
    stage,
)
from ..common.http import build_log_cache_client, build_registry_client
from ..common.settings import LogCacheSettings
from .batching import GUIDBatcher
from .fetcher import MetaFetcher, resolve_log_cache_url
from .models import OutputRow
from .rates import LogCacheTailer, RateSampler, Tailer
from .registry import RegistryClient
from .render import build_rows, render_table, sort_rows
from .resolver import NameResolver
from .scope import Scope, filter_scope

LOGGER = structlog.get_logger("logcache.meta.pipeline")

PREAMBLE = "Retrieving log cache metadata as {username}..."

IdentityLookup = Callable[[], Awaitable[str]]


@dataclass
class MetaOptions:
    show_guid: bool = False
    show_rate: bool = False
    scope: Scope = Scope.ALL
    headers: bool = True


def username_from_token(token: Optional[str]) -> str:
    """Read the ``user_name`` claim from an OAuth access token without verifying it."""

    if not token:
        raise IdentityError("no access token available")
    raw = token.split(" ", 1)[1] if " " in token else token
    try:
        claims = jwt.decode(raw, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise IdentityError(str(exc)) from exc
    username = claims.get("user_name") or claims.get("client_id")
    if not username:
        raise IdentityError("access token carries no user_name claim")
    return str(username)


def settings_identity(settings: LogCacheSettings) -> IdentityLookup:
    async def _lookup() -> str:
        if settings.username:
            return settings.username
        return username_from_token(settings.token)

    return _lookup


class MetaPipeline:
    """Runs every stage on the full source set before moving to the next.

    Nothing is written until every fatal stage has succeeded; callers get
    either the complete rendered output or a :class:`LogCacheError`.
    """

    def __init__(
        self,
        fetcher: MetaFetcher,
        resolver: NameResolver,
        *,
        sampler: Optional[RateSampler] = None,
        identity: Optional[IdentityLookup] = None,
    ) -> None:
        self._fetcher = fetcher
        self._resolver = resolver
        self._sampler = sampler
        self._identity = identity

    async def collect(self, options: MetaOptions) -> list[OutputRow]:
        if options.show_rate and self._sampler is None:
            raise ConfigurationError("Rate column requested but no telemetry tailer is configured.")

        with stage(META_STAGE):
            statistics = await self._fetcher.fetch()
        with stage(REGISTRY_STAGE):
            identities = await self._resolver.resolve(statistics)

        rates = None
        if options.show_rate and self._sampler is not None:
            rates = await self._sampler.sample(identities)

        scoped = filter_scope(identities, options.scope)
        LOGGER.debug("Scope applied", scope=options.scope.value, kept=len(scoped), total=len(identities))
        return sort_rows(build_rows(statistics, scoped, rates))

    async def render(self, options: MetaOptions) -> str:
        rows = await self.collect(options)
        table = render_table(rows, show_guid=options.show_guid, show_rate=options.show_rate, headers=options.headers)
        if not options.headers:
            return table
        if self._identity is None:
            raise IdentityError("no identity lookup configured", stage=IDENTITY_STAGE)
        with stage(IDENTITY_STAGE):
            username = await self._identity()
        return PREAMBLE.format(username=username) + "\n\n" + table


@asynccontextmanager
async def open_pipeline(
    settings: LogCacheSettings,
    *,
    tailer: Optional[Tailer] = None,
    identity: Optional[IdentityLookup] = None,
    rate_window: Optional[timedelta] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[MetaPipeline]:
    """Wire a pipeline from settings and close its HTTP clients afterwards."""

    if not settings.api_url:
        raise ConfigurationError("No API endpoint targeted.")
    with stage(ENDPOINT_STAGE):
        log_cache_url = resolve_log_cache_url(settings.log_cache_addr, settings.api_url)

    log_cache_http = build_log_cache_client(settings, transport=transport)
    registry_http = build_registry_client(settings, transport=transport)
    try:
        registry = RegistryClient(registry_http, settings.api_url)
        batcher = GUIDBatcher(max_concurrency=settings.max_concurrency)
        sampler = RateSampler(
            tailer or LogCacheTailer(log_cache_http, log_cache_url),
            window=rate_window or timedelta(seconds=settings.rate_window_seconds),
            max_concurrency=settings.max_concurrency,
        )
        LOGGER.debug("Pipeline configured", log_cache_url=log_cache_url, api_url=settings.api_url)
        yield MetaPipeline(
            MetaFetcher(log_cache_http, log_cache_url),
            NameResolver(registry, batcher),
            sampler=sampler,
            identity=identity or settings_identity(settings),
        )
    finally:
        await log_cache_http.aclose()
        await registry_http.aclose()


async def run_meta(
    settings: LogCacheSettings,
    options: MetaOptions,
    *,
    tailer: Optional[Tailer] = None,
    identity: Optional[IdentityLookup] = None,
    rate_window: Optional[timedelta] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Build, run and tear down a pipeline, honouring ``LOG_CACHE_DEADLINE``."""

    async def _run() -> str:
        async with open_pipeline(
            settings,
            tailer=tailer,
            identity=identity,
            rate_window=rate_window,
            transport=transport,
        ) as pipeline:
            return await pipeline.render(options)

    if settings.deadline_seconds is None:
        return await _run()
    try:
        return await asyncio.wait_for(_run(), timeout=settings.deadline_seconds)
    except asyncio.TimeoutError:
        raise RequestTimeoutError(f"timed out after {settings.deadline_seconds:g}s") from None
