"""Approximate per-second rates from a short trailing telemetry window."""

from __future__ import annotations

import asyncio
import json
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Union
from urllib.parse import quote

import httpx
import structlog
from opentelemetry import trace
from pydantic import ValidationError

from ..common.errors import ParseError
from ..common.http import get_text
from ..common.schemas import Envelope, ReadResponse
from .models import RateSample

LOGGER = structlog.get_logger("logcache.meta.rates")
TRACER = trace.get_tracer("logcache.meta.rates")

NANOS_PER_SECOND = 1_000_000_000
DEFAULT_WINDOW = timedelta(seconds=15)
READ_PATH = "/api/v1/read/{source_id}"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Tailer = Callable[[str, datetime, datetime], Awaitable[Sequence[str]]]


def to_unix_nanos(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(microseconds=1) * 1000


@dataclass(frozen=True)
class Observation:
    timestamp: int
    name: str
    value: Union[int, float]


def parse_envelope(line: str) -> Envelope:
    try:
        return Envelope.model_validate_json(line)
    except ValidationError as exc:
        raise ParseError(f"malformed envelope: {exc.error_count()} validation error(s)") from exc


def is_platform_noise(envelope: Envelope, name: str) -> bool:
    """True when the envelope's tags attribute it to another metric or source.

    Such entries are re-emitted from the platform's own metrics ring and do
    not describe the source they were read from.
    """

    tagged_name = envelope.tags.get("__name__")
    if tagged_name is not None and tagged_name != name:
        return True
    tagged_source = envelope.tags.get("source_id")
    if tagged_source is not None and envelope.source_id and tagged_source != envelope.source_id:
        return True
    return False


def observations(envelope: Envelope) -> list[Observation]:
    found: list[Observation] = []
    if envelope.counter is not None:
        found.append(Observation(envelope.timestamp, envelope.counter.name, envelope.counter.total))
    if envelope.gauge is not None:
        for name in sorted(envelope.gauge.metrics):
            found.append(Observation(envelope.timestamp, name, envelope.gauge.metrics[name].value))
    return [observation for observation in found if not is_platform_noise(envelope, observation.name)]


def compute_rate(series: Iterable[Observation]) -> Optional[int]:
    """Rate of the most recently reported metric, or ``None`` without data.

    Only observations sharing the name of the latest observation count. The
    rate is ``(last - first) / elapsed`` with elapsed at least one second,
    clamped at zero (counter resets) and rounded half up. A lone observation
    has no delta and yields ``0``.
    """

    ordered = sorted(series, key=lambda observation: observation.timestamp)
    if not ordered:
        return None
    name = ordered[-1].name
    matching = [observation for observation in ordered if observation.name == name]
    if len(matching) < 2:
        return 0
    first, last = matching[0], matching[-1]
    elapsed_ns = max(last.timestamp - first.timestamp, NANOS_PER_SECOND)
    delta = last.value - first.value
    if delta <= 0:
        return 0
    if isinstance(delta, int):
        # Counters are uint64; stay in integer arithmetic.
        return (2 * delta * NANOS_PER_SECOND + elapsed_ns) // (2 * elapsed_ns)
    return math.floor(delta * NANOS_PER_SECOND / elapsed_ns + 0.5)


def rate_from_lines(lines: Iterable[str]) -> Optional[int]:
    series: list[Observation] = []
    for line in lines:
        if not line.strip():
            continue
        series.extend(observations(parse_envelope(line)))
    return compute_rate(series)


class RateSampler:
    """Samples every source independently; one failing source only blanks its own rate."""

    def __init__(
        self,
        tailer: Tailer,
        *,
        window: timedelta = DEFAULT_WINDOW,
        max_concurrency: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._tailer = tailer
        self._window = window
        self._max_concurrency = max(1, max_concurrency)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def sample(self, source_ids: Iterable[str]) -> dict[str, RateSample]:
        ids = list(dict.fromkeys(source_ids))
        end = self._clock()
        start = end - self._window
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(source_id: str) -> RateSample:
            async with semaphore:
                return await self._sample_one(source_id, start, end)

        with TRACER.start_as_current_span("logcache.meta.sample_rates") as span:
            span.set_attribute("logcache.sources", len(ids))
            samples = await asyncio.gather(*(_bounded(source_id) for source_id in ids))
        unavailable = sum(1 for sample in samples if not sample.available)
        LOGGER.debug("Sampled rates", sources=len(ids), unavailable=unavailable)
        return {sample.source_id: sample for sample in samples}

    async def _sample_one(self, source_id: str, start: datetime, end: datetime) -> RateSample:
        try:
            lines = await self._tailer(source_id, start, end)
            return RateSample(source_id=source_id, rate=rate_from_lines(lines))
        except Exception as exc:  # noqa: BLE001 - a single source must not abort the table
            LOGGER.warning("Rate sampling failed", source_id=source_id, error=str(exc))
            return RateSample(source_id=source_id)


class LogCacheTailer:
    """Default tailer reading counter and gauge envelopes back from Log Cache."""

    def __init__(self, http: httpx.AsyncClient, base_url: str, *, limit: int = 1000) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._limit = limit

    async def __call__(self, source_id: str, start: datetime, end: datetime) -> list[str]:
        url = self._base_url + READ_PATH.format(source_id=quote(source_id, safe=""))
        params = [
            ("start_time", str(to_unix_nanos(start))),
            ("end_time", str(to_unix_nanos(end))),
            ("envelope_types", "COUNTER"),
            ("envelope_types", "GAUGE"),
            ("limit", str(self._limit)),
        ]
        body = await get_text(self._http, url, params=params)
        try:
            payload = ReadResponse.model_validate_json(body)
        except ValidationError as exc:
            raise ParseError(f"malformed read response for {source_id}") from exc
        return [json.dumps(envelope) for envelope in payload.envelopes.batch]
