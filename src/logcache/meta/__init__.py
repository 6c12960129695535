"""Metadata aggregation pipeline.

Stages run leaf to root: statistics fetch, batched name resolution, optional
rate sampling, scope filtering and table rendering.
"""

from .batching import MAX_GUIDS_PER_REQUEST, GUIDBatcher
from .fetcher import MetaFetcher
from .models import OutputRow, RateSample, ResolvedIdentity, SourceKind
from .pipeline import MetaOptions, MetaPipeline, open_pipeline, run_meta
from .rates import LogCacheTailer, RateSampler
from .registry import RegistryClient
from .resolver import NameResolver
from .scope import Scope, filter_scope, parse_scope

__all__ = [
    "MAX_GUIDS_PER_REQUEST",
    "GUIDBatcher",
    "LogCacheTailer",
    "MetaFetcher",
    "MetaOptions",
    "MetaPipeline",
    "NameResolver",
    "OutputRow",
    "RateSample",
    "RateSampler",
    "RegistryClient",
    "ResolvedIdentity",
    "Scope",
    "SourceKind",
    "filter_scope",
    "open_pipeline",
    "parse_scope",
    "run_meta",
]
