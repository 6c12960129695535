"""Scope filtering by resolution outcome."""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional

from ..common.errors import ConfigurationError
from .models import ResolvedIdentity, SourceKind


class Scope(str, Enum):
    APPLICATIONS = "applications"
    PLATFORM = "platform"
    ALL = "all"


SCOPE_ERROR = "Scope must be 'platform', 'applications' or 'all'."

_KINDS_BY_SCOPE = {
    Scope.APPLICATIONS: {SourceKind.APPLICATION},
    Scope.PLATFORM: {SourceKind.UNRESOLVED},
    Scope.ALL: set(SourceKind),
}


def parse_scope(value: Optional[str]) -> Scope:
    if value is None:
        return Scope.ALL
    try:
        return Scope(value.strip().lower())
    except ValueError:
        raise ConfigurationError(SCOPE_ERROR) from None


def filter_scope(identities: Mapping[str, ResolvedIdentity], scope: Scope) -> dict[str, ResolvedIdentity]:
    kinds = _KINDS_BY_SCOPE[scope]
    return {source_id: identity for source_id, identity in identities.items() if identity.kind in kinds}
