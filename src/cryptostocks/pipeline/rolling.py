"""Trailing moving averages over the aligned table.

Windows count rows, not calendar days: the average at row ``i`` covers rows
``i - (window_size - 1)`` through ``i``, clipped at the first row. Rows where
a source's high is missing are left out of that source's sum and count.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from cryptostocks.types import FinalRecord, JoinedRecord, SourceId


def trailing_mean(
    values: Sequence[float | None],
    window_size: int,
) -> list[float | None]:
    """Mean of each value and up to ``window_size - 1`` values before it.

    Missing values are skipped; a window with no values gives None.

    :param values: Series in row order, None for missing.
    :param window_size: Number of rows in each window.
    :returns: One mean per input row.
    :raises ValueError: If window_size is not positive.
    """
    if window_size <= 0:
        raise ValueError("window_size must be positive")
    if len(values) == 0:
        return []

    series: NDArray[np.float64] = np.array(
        [np.nan if v is None else v for v in values], dtype=np.float64
    )
    present = ~np.isnan(series)

    # Windows are summed directly, not as differences of running totals
    kernel = np.ones(window_size, dtype=np.float64)
    window_sums = np.convolve(np.where(present, series, 0.0), kernel)[: len(series)]
    window_counts = np.rint(
        np.convolve(present.astype(np.float64), kernel)[: len(series)]
    ).astype(np.int64)

    return [
        float(total / count) if count > 0 else None
        for total, count in zip(window_sums, window_counts)
    ]


def add_moving_averages(
    rows: Sequence[JoinedRecord],
    sources: Sequence[SourceId],
    window_size: int,
) -> list[FinalRecord]:
    """Attach a trailing average of each source's high to every row.

    :param rows: Aggregated rows sorted ascending by date.
    :param sources: Sources to average.
    :param window_size: Number of rows in each window.
    :returns: Final rows in the same order.
    """
    averages = {
        source: trailing_mean([row.high(source) for row in rows], window_size)
        for source in sources
    }
    return [
        FinalRecord(
            date=row.date,
            year=row.year,
            prices=row.prices,
            averages={source: averages[source][idx] for source in sources},
        )
        for idx, row in enumerate(rows)
    ]
