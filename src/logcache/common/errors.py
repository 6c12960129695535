"""Error taxonomy shared by the metadata pipeline and the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

ENDPOINT_STAGE = "Could not determine Log Cache endpoint"
META_STAGE = "Failed to read Meta information"
REGISTRY_STAGE = "Failed to read application information"
IDENTITY_STAGE = "Could not get username"


class LogCacheError(RuntimeError):
    """Base class for every fatal pipeline failure."""

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage

    def describe(self) -> str:
        if self.stage:
            return f"{self.stage}: {self}"
        return str(self)


class ConfigurationError(LogCacheError):
    """Invalid arguments, scope values or missing endpoints."""


class TransportError(LogCacheError):
    """Network failure or non-success status from an upstream service."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.status_code = status_code


class FetchError(TransportError):
    """Log Cache request failed."""


class RequestTimeoutError(TransportError):
    """A request or the whole pipeline ran past its deadline."""


class ParseError(LogCacheError):
    """Upstream returned a body that is not the expected JSON document."""


class ResolutionError(LogCacheError):
    """A registry lookup failed while resolving source names."""


class IdentityError(LogCacheError):
    """The caller's identity could not be determined."""


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Label any unlabelled LogCacheError raised inside the block with ``name``."""

    try:
        yield
    except LogCacheError as exc:
        if exc.stage is None:
            exc.stage = name
        raise
