"""Two-pass name resolution for source identifiers."""

from __future__ import annotations

from typing import Iterable

import structlog
from opentelemetry import trace

from ..common.errors import RequestTimeoutError, ResolutionError, TransportError
from .batching import BatchLookup, GUIDBatcher
from .models import ResolvedIdentity, SourceKind
from .registry import RegistryClient

LOGGER = structlog.get_logger("logcache.meta.resolver")
TRACER = trace.get_tracer("logcache.meta.resolver")


class NameResolver:
    """Resolve source identifiers to application or service instance names.

    Applications are looked up first for every identifier. Only identifiers
    still unresolved are sent to the service instance endpoint, so an
    identifier that resolved as an application is never reclassified.
    """

    def __init__(self, registry: RegistryClient, batcher: GUIDBatcher | None = None) -> None:
        self._registry = registry
        self._batcher = batcher or GUIDBatcher()

    async def resolve(self, source_ids: Iterable[str]) -> dict[str, ResolvedIdentity]:
        identities = {source_id: ResolvedIdentity.unresolved(source_id) for source_id in source_ids}
        if not identities:
            return identities

        with TRACER.start_as_current_span("logcache.meta.resolve_applications") as span:
            applications = await self._lookup(identities, self._registry.application_names)
            span.set_attribute("logcache.resolved", len(applications))
        self._apply(identities, applications, SourceKind.APPLICATION)

        remaining = [
            source_id for source_id, identity in identities.items() if identity.kind is SourceKind.UNRESOLVED
        ]
        services: dict[str, str] = {}
        if remaining:
            with TRACER.start_as_current_span("logcache.meta.resolve_service_instances") as span:
                services = await self._lookup(remaining, self._registry.service_instance_names)
                span.set_attribute("logcache.resolved", len(services))
            self._apply(identities, services, SourceKind.SERVICE_INSTANCE)

        LOGGER.debug(
            "Resolved source names",
            sources=len(identities),
            applications=sum(1 for i in identities.values() if i.kind is SourceKind.APPLICATION),
            service_instances=sum(1 for i in identities.values() if i.kind is SourceKind.SERVICE_INSTANCE),
        )
        return identities

    async def _lookup(self, source_ids: Iterable[str], lookup: BatchLookup) -> dict[str, str]:
        try:
            return await self._batcher.run(source_ids, lookup)
        except RequestTimeoutError:
            raise
        except TransportError as exc:
            raise ResolutionError(str(exc)) from exc

    @staticmethod
    def _apply(identities: dict[str, ResolvedIdentity], names: dict[str, str], kind: SourceKind) -> None:
        for source_id, name in names.items():
            current = identities.get(source_id)
            # Unrequested guids in a reply are ignored; resolved entries are final.
            if current is None or current.kind is not SourceKind.UNRESOLVED or not name:
                continue
            identities[source_id] = ResolvedIdentity(source_id=source_id, display_name=name, kind=kind)
