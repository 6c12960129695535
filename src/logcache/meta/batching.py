"""Split identifier sets into registry-sized batches."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, Sequence

import structlog

LOGGER = structlog.get_logger("logcache.meta.batching")

MAX_GUIDS_PER_REQUEST = 50

BatchLookup = Callable[[Sequence[str]], Awaitable[dict[str, str]]]


def partition(guids: Iterable[str], size: int = MAX_GUIDS_PER_REQUEST) -> list[list[str]]:
    """Split ``guids`` into consecutive batches of at most ``size``, dropping duplicates."""

    if size < 1:
        raise ValueError("batch size must be positive")
    unique = list(dict.fromkeys(guids))
    return [unique[start : start + size] for start in range(0, len(unique), size)]


class GUIDBatcher:
    """Runs a lookup once per batch and merges the replies.

    Batches run concurrently up to ``max_concurrency`` and are started in
    batch order. If any batch fails the first failure is raised once every
    batch has settled, so no partial mapping escapes.
    """

    def __init__(self, *, batch_size: int = MAX_GUIDS_PER_REQUEST, max_concurrency: int = 1) -> None:
        if not 1 <= batch_size <= MAX_GUIDS_PER_REQUEST:
            raise ValueError(f"batch size must be between 1 and {MAX_GUIDS_PER_REQUEST}")
        self._batch_size = batch_size
        self._max_concurrency = max(1, max_concurrency)

    async def run(self, guids: Iterable[str], lookup: BatchLookup) -> dict[str, str]:
        batches = partition(guids, self._batch_size)
        if not batches:
            return {}

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _run_batch(batch: list[str]) -> dict[str, str]:
            async with semaphore:
                return await lookup(batch)

        results = await asyncio.gather(*(_run_batch(batch) for batch in batches), return_exceptions=True)

        merged: dict[str, str] = {}
        failures: list[BaseException] = []
        for result in results:
            if isinstance(result, BaseException):
                failures.append(result)
                continue
            merged.update(result)
        if failures:
            if len(failures) > 1:
                LOGGER.warning("Multiple registry batches failed", failed=len(failures), batches=len(batches))
            raise failures[0]
        LOGGER.debug("Batched lookup complete", batches=len(batches), resolved=len(merged))
        return merged
