"""Internal records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SourceKind(str, Enum):
    APPLICATION = "application"
    SERVICE_INSTANCE = "service_instance"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class ResolvedIdentity:
    source_id: str
    display_name: str
    kind: SourceKind = SourceKind.UNRESOLVED

    @classmethod
    def unresolved(cls, source_id: str) -> "ResolvedIdentity":
        return cls(source_id=source_id, display_name=source_id)


@dataclass(frozen=True)
class RateSample:
    source_id: str
    rate: Optional[int] = None  # None: no usable telemetry in the window

    @property
    def available(self) -> bool:
        return self.rate is not None


@dataclass(frozen=True)
class OutputRow:
    source_id: str
    display_name: str
    count: int
    expired: int
    cache_duration_ns: int
    rate: Optional[int] = None
