"""Merge stage outputs into rows and render them as an aligned table."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from ..common.schemas import SourceStatistics
from .models import OutputRow, RateSample, ResolvedIdentity

NANOS_PER_SECOND = 1_000_000_000
COLUMN_PADDING = 2

HEADER_SOURCE_ID = "Source ID"
HEADER_SOURCE = "Source"
HEADER_COUNT = "Count"
HEADER_EXPIRED = "Expired"
HEADER_DURATION = "Cache Duration"
HEADER_RATE = "Rate"


def format_duration(duration_ns: int) -> str:
    """Render a nanosecond duration truncated to whole seconds, e.g. ``11m45s``."""

    total = max(duration_ns, 0) // NANOS_PER_SECOND
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


def build_rows(
    statistics: Mapping[str, SourceStatistics],
    identities: Mapping[str, ResolvedIdentity],
    rates: Optional[Mapping[str, RateSample]] = None,
) -> list[OutputRow]:
    """One row per identity; identities without statistics are skipped."""

    rows: list[OutputRow] = []
    for source_id, identity in identities.items():
        stats = statistics.get(source_id)
        if stats is None:
            continue
        sample = rates.get(source_id) if rates else None
        rows.append(
            OutputRow(
                source_id=source_id,
                display_name=identity.display_name,
                count=stats.count,
                expired=stats.expired,
                cache_duration_ns=stats.cache_duration_ns,
                rate=sample.rate if sample else None,
            )
        )
    return rows


def sort_rows(rows: Iterable[OutputRow]) -> list[OutputRow]:
    # sorted() is stable, so equal display names keep upstream order.
    return sorted(rows, key=lambda row: row.display_name)


def _row_cells(row: OutputRow, *, show_guid: bool, show_rate: bool) -> list[str]:
    cells = [row.display_name, str(row.count), str(row.expired), format_duration(row.cache_duration_ns)]
    if show_guid:
        cells.insert(0, row.source_id)
    if show_rate:
        cells.append("" if row.rate is None else str(row.rate))
    return cells


def header_cells(*, show_guid: bool, show_rate: bool) -> list[str]:
    cells = [HEADER_SOURCE, HEADER_COUNT, HEADER_EXPIRED, HEADER_DURATION]
    if show_guid:
        cells.insert(0, HEADER_SOURCE_ID)
    if show_rate:
        cells.append(HEADER_RATE)
    return cells


def format_table(lines: Sequence[Sequence[str]]) -> str:
    """Left-align columns to their widest cell plus two spaces; the last column is not padded."""

    if not lines:
        return ""
    columns = len(lines[0])
    widths = [max(len(line[index]) for line in lines) for index in range(columns)]
    rendered = []
    for line in lines:
        padded = [cell.ljust(widths[index] + COLUMN_PADDING) for index, cell in enumerate(line[:-1])]
        rendered.append(("".join(padded) + line[-1]).rstrip() + "\n")
    return "".join(rendered)


def render_table(
    rows: Sequence[OutputRow],
    *,
    show_guid: bool = False,
    show_rate: bool = False,
    headers: bool = True,
) -> str:
    lines = [_row_cells(row, show_guid=show_guid, show_rate=show_rate) for row in rows]
    if headers:
        lines.insert(0, header_cells(show_guid=show_guid, show_rate=show_rate))
    return format_table(lines)
