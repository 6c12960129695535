"""Cloud Controller lookups for application and service instance names."""

from __future__ import annotations

from typing import Optional, Sequence
from urllib.parse import quote, urljoin

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from ..common.errors import ParseError
from ..common.http import get_text
from ..common.schemas import AppsPage, ServiceInstancesPage

LOGGER = structlog.get_logger("logcache.meta.registry")

APPS_PATH = "/v3/apps"
SERVICE_INSTANCES_PATH = "/v2/service_instances"

# A batch whose replies still link onward after this many pages is rejected.
MAX_PAGES = 100


def guids_path(path: str, guids: Sequence[str]) -> str:
    """Build ``path?guids=a,b`` with each guid percent-encoded and literal commas between them."""

    encoded = ",".join(quote(guid, safe="") for guid in guids)
    return f"{path}?guids={encoded}"


def _parse_page(body: str, model: type[BaseModel], kind: str):
    try:
        return model.model_validate_json(body)
    except ValidationError as exc:
        raise ParseError(f"malformed {kind} response: {exc.error_count()} validation error(s)") from exc


class RegistryClient:
    """Thin client over the two registry endpoints.

    Each lookup takes at most one batch of identifiers and follows
    pagination links until the registry stops returning them.
    """

    def __init__(self, http: httpx.AsyncClient, api_url: str) -> None:
        self._http = http
        self._api_url = api_url.rstrip("/")

    def _absolute(self, path_or_url: str) -> str:
        return urljoin(f"{self._api_url}/", path_or_url)

    async def curl(self, path_or_url: str) -> str:
        return await get_text(self._http, self._absolute(path_or_url))

    async def application_names(self, guids: Sequence[str]) -> dict[str, str]:
        names: dict[str, str] = {}
        next_path: Optional[str] = guids_path(APPS_PATH, guids)
        pages = 0
        while next_path and pages < MAX_PAGES:
            page = _parse_page(await self.curl(next_path), AppsPage, "application")
            for resource in page.resources:
                names[resource.guid] = resource.name
            next_path = page.next_href
            pages += 1
        if next_path:
            raise ParseError(f"application reply still paginating after {MAX_PAGES} pages")
        LOGGER.debug("Application lookup complete", requested=len(guids), found=len(names), pages=pages)
        return names

    async def service_instance_names(self, guids: Sequence[str]) -> dict[str, str]:
        names: dict[str, str] = {}
        next_path: Optional[str] = guids_path(SERVICE_INSTANCES_PATH, guids)
        pages = 0
        while next_path and pages < MAX_PAGES:
            page = _parse_page(await self.curl(next_path), ServiceInstancesPage, "service instance")
            for resource in page.resources:
                names[resource.metadata.guid] = resource.entity.name
            next_path = page.next_url
            pages += 1
        if next_path:
            raise ParseError(f"service instance reply still paginating after {MAX_PAGES} pages")
        LOGGER.debug("Service instance lookup complete", requested=len(guids), found=len(names), pages=pages)
        return names
