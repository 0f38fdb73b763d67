"""Alignment of several sources onto one calendar.

Three steps live here:

1. :func:`qualify_records` tags each normalized row with its source id (the
   ``high`` -> ``<source>_high`` rename) and applies the year filter.
2. :func:`align_sources` full outer joins the qualified sources in priority
   order on the first source's date, coalescing ``date``/``year`` from the
   first source that has them.
3. :func:`aggregate_by_date` groups joined rows by ``(date, year)`` and sums
   each price column, which merges any duplicate dates the join produced.

Missing values are explicit ``None`` throughout. Joins never match a missing
date, and sums skip missing values (a group with no values stays missing).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Sequence

from cryptostocks.types import (JoinedRecord, NormalizedRecord, PricePoint,
                                QualifiedRecord, SourceId, YearRange)

logger = logging.getLogger(__name__)


def qualify_records(
    records: Iterable[NormalizedRecord],
    source: SourceId,
    year_range: YearRange,
) -> list[QualifiedRecord]:
    """Tag rows with their source and keep only rows inside ``year_range``.

    Rows with a missing year never pass the filter.

    :param records: Normalized rows of one source.
    :param source: Identifier that qualifies the price columns.
    :param year_range: Exclusive year bounds.
    :returns: Qualified rows in input order.
    """
    kept: list[QualifiedRecord] = []
    dropped = 0
    for record in records:
        if not year_range.contains(record.year):
            dropped += 1
            continue
        kept.append(QualifiedRecord(source=source, **record.model_dump()))

    logger.debug(
        "Source %s: kept %d rows, dropped %d outside %d < year < %d",
        source,
        len(kept),
        dropped,
        year_range.after,
        year_range.before,
    )
    return kept


def _to_joined(record: QualifiedRecord) -> JoinedRecord:
    return JoinedRecord(
        date=record.date,
        year=record.year,
        prices={record.source: PricePoint(high=record.high, low=record.low)},
    )


def _coalesce(*values):
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def _merge(left: JoinedRecord, right: JoinedRecord) -> JoinedRecord:
    return JoinedRecord(
        date=_coalesce(left.date, right.date),
        year=_coalesce(left.year, right.year),
        prices={**right.prices, **left.prices},
    )


def _join_keyed(
    left: Sequence[JoinedRecord],
    left_keys: Sequence[date | None],
    right: Sequence[JoinedRecord],
) -> tuple[list[JoinedRecord], list[date | None]]:
    """Full outer join matching ``left_keys`` against the right rows' dates.

    Returns the joined rows and the key each one carries into the next join:
    the left key for rows that came from the left, None for unmatched right
    rows.
    """
    index: dict[date, list[int]] = defaultdict(list)
    for pos, row in enumerate(right):
        if row.date is not None:
            index[row.date].append(pos)

    matched: set[int] = set()
    joined: list[JoinedRecord] = []
    keys: list[date | None] = []
    for row, key in zip(left, left_keys):
        positions = index.get(key, []) if key is not None else []
        if not positions:
            joined.append(row)
            keys.append(key)
            continue
        for pos in positions:
            matched.add(pos)
            joined.append(_merge(row, right[pos]))
            keys.append(key)

    for pos, row in enumerate(right):
        if pos not in matched:
            joined.append(row)
            keys.append(None)
    return joined, keys


def full_outer_join(
    left: Sequence[JoinedRecord],
    right: Sequence[JoinedRecord],
) -> list[JoinedRecord]:
    """Full outer join two row sets on ``date``.

    Matching rows pair up with SQL multiplicity (two left rows and one right
    row for a date give two output rows). Unmatched rows from either side are
    kept with the other side's prices absent. A missing date matches nothing.
    ``date`` and ``year`` come from the left row when present.

    :param left: Driving side; its values win when coalescing.
    :param right: Joined side.
    :returns: Joined rows, left-side order first, then unmatched right rows.
    """
    joined, _ = _join_keyed(left, [row.date for row in left], right)
    return joined


def _date_sort_key(row: JoinedRecord) -> tuple:
    # Missing dates sort first
    return (row.date is not None, row.date or date.min)


def align_sources(sources: Sequence[Sequence[QualifiedRecord]]) -> list[JoinedRecord]:
    """Full outer join qualified sources on date.

    The first source is joined to the second, and that result to the third
    (and so on). Every join matches on the first source's date, so rows that
    only later sources share stay separate here and are merged by
    :func:`aggregate_by_date`. A date present in any source yields a row; the
    prices of sources without that date are absent.

    :param sources: Qualified rows per source, in priority order.
    :returns: Joined rows sorted ascending by date.
    """
    if not sources:
        return []

    joined = [_to_joined(record) for record in sources[0]]
    keys: list[date | None] = [row.date for row in joined]
    for records in sources[1:]:
        joined, keys = _join_keyed(
            joined, keys, [_to_joined(record) for record in records]
        )

    joined.sort(key=_date_sort_key)
    logger.debug("Outer join of %d sources produced %d rows", len(sources), len(joined))
    return joined


def _sum_missing(values: Iterable[float | None]) -> float | None:
    """Sum the values that are present; None when none are."""
    present = [value for value in values if value is not None]
    if not present:
        return None
    return sum(present)


def aggregate_by_date(rows: Iterable[JoinedRecord]) -> list[JoinedRecord]:
    """Collapse joined rows to one row per ``(date, year)``.

    Each source's high and low are summed across the group, so duplicate
    dates add their prices together. A source absent from every row of a
    group stays absent.

    :param rows: Joined rows.
    :returns: One row per key, sorted ascending by ``(date, year)``.
    """
    groups: dict[tuple[date | None, int | None], list[JoinedRecord]] = defaultdict(list)
    for row in rows:
        groups[(row.date, row.year)].append(row)

    aggregated: list[JoinedRecord] = []
    for (key_date, key_year), members in groups.items():
        sources: list[SourceId] = []
        for member in members:
            sources.extend(s for s in member.prices if s not in sources)

        prices = {}
        for source in sources:
            points = [m.prices[source] for m in members if source in m.prices]
            prices[source] = PricePoint(
                high=_sum_missing(p.high for p in points),
                low=_sum_missing(p.low for p in points),
            )
        aggregated.append(JoinedRecord(date=key_date, year=key_year, prices=prices))

    aggregated.sort(
        key=lambda row: (
            *_date_sort_key(row),
            row.year is not None,
            row.year or 0,
        )
    )
    return aggregated
