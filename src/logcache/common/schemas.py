"""Wire models for Log Cache and registry payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MetaInfo(BaseModel):
    """Per-source storage statistics as reported by ``/api/v1/meta``.

    Log Cache serialises 64-bit integers as strings and omits zero values,
    so every field is coerced and defaults to ``0``.
    """

    count: int = 0
    expired: int = 0
    oldest_timestamp: int = Field(0, alias="oldestTimestamp")
    newest_timestamp: int = Field(0, alias="newestTimestamp")


class MetaResponse(BaseModel):
    meta: dict[str, MetaInfo] = Field(default_factory=dict)


class SourceStatistics(BaseModel):
    """Immutable statistics for a single source identifier."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    count: int = 0
    expired: int = 0
    oldest_timestamp: int = 0
    newest_timestamp: int = 0

    @classmethod
    def from_meta(cls, source_id: str, info: MetaInfo) -> "SourceStatistics":
        return cls(
            source_id=source_id,
            count=info.count,
            expired=info.expired,
            oldest_timestamp=info.oldest_timestamp,
            newest_timestamp=info.newest_timestamp,
        )

    @property
    def cache_duration_ns(self) -> int:
        return self.newest_timestamp - self.oldest_timestamp


class PageLink(BaseModel):
    href: Optional[str] = None


class Pagination(BaseModel):
    next: Optional[PageLink] = None


class AppResource(BaseModel):
    guid: str
    name: str = ""


class AppsPage(BaseModel):
    """One page of ``GET /v3/apps``."""

    resources: list[AppResource] = Field(default_factory=list)
    pagination: Optional[Pagination] = None

    @property
    def next_href(self) -> Optional[str]:
        if self.pagination and self.pagination.next:
            return self.pagination.next.href
        return None


class ResourceMetadata(BaseModel):
    guid: str


class ResourceEntity(BaseModel):
    name: str = ""


class ServiceInstanceResource(BaseModel):
    metadata: ResourceMetadata
    entity: ResourceEntity = Field(default_factory=ResourceEntity)


class ServiceInstancesPage(BaseModel):
    """One page of ``GET /v2/service_instances``."""

    resources: list[ServiceInstanceResource] = Field(default_factory=list)
    next_url: Optional[str] = None


class CounterValue(BaseModel):
    name: str
    total: int = 0


class GaugeMetric(BaseModel):
    value: float = 0.0


class GaugeValue(BaseModel):
    metrics: dict[str, GaugeMetric] = Field(default_factory=dict)


class Envelope(BaseModel):
    """A single telemetry envelope read back from Log Cache."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: int = 0
    source_id: str = Field("", alias="sourceId")
    counter: Optional[CounterValue] = None
    gauge: Optional[GaugeValue] = None
    tags: dict[str, str] = Field(default_factory=dict)


class ReadBatch(BaseModel):
    batch: list[dict] = Field(default_factory=list)


class ReadResponse(BaseModel):
    """Body of ``GET /api/v1/read/{source_id}``."""

    envelopes: ReadBatch = Field(default_factory=ReadBatch)
