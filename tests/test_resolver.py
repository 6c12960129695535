from __future__ import annotations

import httpx
import pytest

from logcache.common.errors import RequestTimeoutError, ResolutionError
from logcache.meta.batching import GUIDBatcher
from logcache.meta.models import SourceKind
from logcache.meta.registry import RegistryClient
from logcache.meta.resolver import NameResolver
from tests.support import API_URL


async def _resolve(foundation, source_ids, batcher=None):
    async with httpx.AsyncClient(transport=foundation.transport()) as client:
        resolver = NameResolver(RegistryClient(client, API_URL), batcher)
        return await resolver.resolve(source_ids)


@pytest.mark.asyncio
async def test_applications_then_service_instances(foundation) -> None:
    foundation.apps = {"source-1": "app-1"}
    foundation.service_instances = {"source-2": "aa-service-2", "source-3": "ab-service-3"}

    identities = await _resolve(foundation, ["source-1", "source-2", "source-3", "source-4"])

    assert identities["source-1"].kind is SourceKind.APPLICATION
    assert identities["source-2"].display_name == "aa-service-2"
    assert identities["source-3"].kind is SourceKind.SERVICE_INSTANCE
    assert identities["source-4"].kind is SourceKind.UNRESOLVED
    assert identities["source-4"].display_name == "source-4"
    assert foundation.guid_batches("/v2/service_instances") == [["source-2", "source-3", "source-4"]]


@pytest.mark.asyncio
async def test_application_wins_over_service_instance(foundation) -> None:
    foundation.apps = {"source-1": "app-1"}
    foundation.service_instances = {"source-1": "service-1", "source-2": "service-2"}

    identities = await _resolve(foundation, ["source-1", "source-2"])

    assert identities["source-1"].display_name == "app-1"
    assert identities["source-1"].kind is SourceKind.APPLICATION


@pytest.mark.asyncio
async def test_second_pass_skipped_when_everything_resolved(foundation) -> None:
    foundation.apps = {"source-1": "app-2", "source-2": "app-1"}

    await _resolve(foundation, ["source-1", "source-2"])

    assert foundation.requests_to("/v2/service_instances") == []
    assert len(foundation.requests_to("/v3/apps")) == 1


@pytest.mark.asyncio
async def test_empty_input_makes_no_requests(foundation) -> None:
    assert await _resolve(foundation, []) == {}
    assert foundation.requests == []


@pytest.mark.asyncio
async def test_unrequested_and_blank_names_are_ignored() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v3/apps":
            return httpx.Response(
                200,
                json={"resources": [{"guid": "stranger", "name": "x"}, {"guid": "source-1", "name": ""}]},
            )
        return httpx.Response(200, json={"resources": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        identities = await NameResolver(RegistryClient(client, API_URL)).resolve(["source-1"])

    assert list(identities) == ["source-1"]
    assert identities["source-1"].kind is SourceKind.UNRESOLVED


@pytest.mark.asyncio
async def test_fifty_one_ids_use_two_batches_per_pass(foundation) -> None:
    source_ids = [f"source-{i}" for i in range(51)]

    await _resolve(foundation, source_ids, GUIDBatcher(max_concurrency=1))

    assert [len(batch) for batch in foundation.guid_batches("/v3/apps")] == [50, 1]
    assert [len(batch) for batch in foundation.guid_batches("/v2/service_instances")] == [50, 1]


@pytest.mark.asyncio
async def test_registry_failure_is_resolution_error(foundation) -> None:
    foundation.failures["/v2/service_instances"] = 500

    with pytest.raises(ResolutionError, match="Expected 200 response code, but got 500."):
        await _resolve(foundation, ["source-1"])


@pytest.mark.asyncio
async def test_registry_timeout_keeps_its_type() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow registry", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(RequestTimeoutError):
            await NameResolver(RegistryClient(client, API_URL)).resolve(["source-1"])


@pytest.mark.asyncio
async def test_reserved_characters_do_not_hide_later_ids(foundation) -> None:
    foundation.apps = {"app-guid": "my-app"}

    identities = await _resolve(foundation, ["syslog&drain", "app-guid"])

    assert foundation.guid_batches("/v3/apps") == [["syslog&drain", "app-guid"]]
    assert identities["app-guid"].kind is SourceKind.APPLICATION
    assert identities["syslog&drain"].kind is SourceKind.UNRESOLVED
