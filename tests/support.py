"""Fakes and payload builders shared across the test suite."""

from __future__ import annotations

import json
from typing import Optional

import httpx

API_URL = "https://api.example.com"
LOG_CACHE_URL = "https://log-cache.example.com"

OLDEST_TIMESTAMP = 1519256157847077020
NEWEST_TIMESTAMP = 1519256863126668345


def meta_entry(
    count: int = 100000,
    expired: int = 85008,
    oldest: int = OLDEST_TIMESTAMP,
    newest: int = NEWEST_TIMESTAMP,
) -> dict[str, str]:
    return {
        "count": str(count),
        "expired": str(expired),
        "oldestTimestamp": str(oldest),
        "newestTimestamp": str(newest),
    }


def meta_body(*source_ids: str) -> dict:
    return {"meta": {source_id: meta_entry() for source_id in source_ids}}


def apps_body(names: dict[str, str], next_href: Optional[str] = None) -> dict:
    return {
        "resources": [{"guid": guid, "name": name} for guid, name in names.items()],
        "pagination": {"next": {"href": next_href} if next_href else None},
    }


def service_instances_body(names: dict[str, str], next_url: Optional[str] = None) -> dict:
    return {
        "resources": [{"metadata": {"guid": guid}, "entity": {"name": name}} for guid, name in names.items()],
        "next_url": next_url,
    }


class FakeFoundation:
    """In-memory Log Cache and registry served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.meta: dict[str, dict[str, str]] = {}
        self.apps: dict[str, str] = {}
        self.service_instances: dict[str, str] = {}
        self.envelopes: dict[str, list[dict]] = {}
        self.failures: dict[str, int] = {}
        self.raw_bodies: dict[str, str] = {}
        self.requests: list[httpx.Request] = []

    def add_sources(self, *source_ids: str) -> None:
        for source_id in source_ids:
            self.meta[source_id] = meta_entry()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.failures:
            return httpx.Response(self.failures[path], text="unavailable")
        if path in self.raw_bodies:
            return httpx.Response(200, text=self.raw_bodies[path])
        if path == "/api/v1/meta":
            return httpx.Response(200, json={"meta": self.meta})
        if path.startswith("/api/v1/read/"):
            source_id = path.rsplit("/", 1)[1]
            return httpx.Response(200, json={"envelopes": {"batch": self.envelopes.get(source_id, [])}})
        guids = request.url.params.get("guids", "").split(",")
        if path == "/v3/apps":
            found = {guid: self.apps[guid] for guid in guids if guid in self.apps}
            return httpx.Response(200, json=apps_body(found))
        if path == "/v2/service_instances":
            found = {guid: self.service_instances[guid] for guid in guids if guid in self.service_instances}
            return httpx.Response(200, json=service_instances_body(found))
        return httpx.Response(404, text="not found")

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def guid_batches(self, path: str) -> list[list[str]]:
        return [request.url.params["guids"].split(",") for request in self.requests_to(path)]


def envelope_line(timestamp: int, source_id: str, **payload) -> str:
    body = {"timestamp": str(timestamp), "sourceId": source_id}
    body.update(payload)
    return json.dumps(body)
