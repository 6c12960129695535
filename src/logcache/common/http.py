"""httpx client builders and request helpers.

Every outbound call in the pipeline goes through :func:`get_text` so httpx
failures surface as the typed errors from :mod:`logcache.common.errors`.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from .errors import RequestTimeoutError, TransportError
from .settings import LogCacheSettings

USER_AGENT = "logcache-meta"


def authorization_header(token: Optional[str]) -> dict[str, str]:
    """Return the ``Authorization`` header for ``token``, adding ``Bearer`` when it has no scheme."""

    if not token:
        return {}
    if " " not in token.strip():
        token = f"Bearer {token.strip()}"
    return {"Authorization": token}


def build_async_client(
    settings: LogCacheSettings,
    *,
    token: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    headers.update(authorization_header(token))
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers=headers,
        transport=transport,
    )


def build_log_cache_client(
    settings: LogCacheSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Client for Log Cache; omits credentials when ``LOG_CACHE_SKIP_AUTH`` is set."""

    token = None if settings.skip_auth else settings.token
    return build_async_client(settings, token=token, transport=transport)


def build_registry_client(
    settings: LogCacheSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    return build_async_client(settings, token=settings.token, transport=transport)


async def get_text(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Any] = None,
    error_cls: type[TransportError] = TransportError,
) -> str:
    """GET ``url`` and return the body, requiring a 200 response."""

    try:
        response = await client.get(url, params=params)
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError(f"request to {url} timed out") from exc
    except httpx.HTTPError as exc:
        raise error_cls(str(exc) or exc.__class__.__name__) from exc
    if response.status_code != httpx.codes.OK:
        raise error_cls(
            f"Expected 200 response code, but got {response.status_code}.",
            status_code=response.status_code,
        )
    return response.text
