"""Core type definitions for the price alignment pipeline.

Every stage of the pipeline produces its own immutable row model so that
column references are attribute accesses instead of string lookups. All
models use Pydantic BaseModel for validation and serialization.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field

# Type alias for the identifier used to qualify a source's columns
SourceId = NewType("SourceId", str)


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Row Types
# ---------------------------------------------------------------------------


class RawRecord(FrozenModel):
    """Row as read from a source table, before any parsing.

    :param date: Date string in the source's own format.
    :param high: High price, possibly with thousands separators.
    :param low: Low price, possibly with thousands separators.
    """

    date: str | None = None
    high: str | None = None
    low: str | None = None


class NormalizedRecord(FrozenModel):
    """Row with a parsed calendar date and numeric prices.

    Fields that failed to parse are ``None``; ``year`` is ``None`` whenever
    ``date`` is.
    """

    date: dt.date | None = None
    year: int | None = None
    high: float | None = None
    low: float | None = None


class QualifiedRecord(NormalizedRecord):
    """Normalized row tagged with the source it came from.

    The tag stands in for renaming ``high``/``low`` to
    ``<source>_high``/``<source>_low``; see :meth:`qualified_prices`.
    """

    source: SourceId

    def qualified_prices(self) -> dict[str, float | None]:
        """Return the price columns under their qualified names."""
        return {high_column(self.source): self.high, low_column(self.source): self.low}


class PricePoint(FrozenModel):
    """High/low pair contributed by one source to a joined row."""

    high: float | None = None
    low: float | None = None


class JoinedRecord(FrozenModel):
    """One row of the aligned table.

    :param date: Coalesced calendar date.
    :param year: Coalesced calendar year.
    :param prices: Price pair per source; a source absent for this date has
        no entry.
    """

    date: dt.date | None = None
    year: int | None = None
    prices: dict[SourceId, PricePoint] = Field(default_factory=dict)

    def price(self, source: SourceId) -> PricePoint:
        """Return the price pair for ``source`` (all-missing if absent)."""
        return self.prices.get(source, _MISSING_PRICE)

    def high(self, source: SourceId) -> float | None:
        return self.price(source).high

    def low(self, source: SourceId) -> float | None:
        return self.price(source).low


_MISSING_PRICE = PricePoint()


class FinalRecord(JoinedRecord):
    """Aggregated row extended with per-source trailing averages."""

    averages: dict[SourceId, float | None] = Field(default_factory=dict)

    def average(self, source: SourceId) -> float | None:
        return self.averages.get(source)


def high_column(source: SourceId | str) -> str:
    """Name of the qualified high column for ``source``."""
    return f"{source}_high"


def low_column(source: SourceId | str) -> str:
    """Name of the qualified low column for ``source``."""
    return f"{source}_low"


def average_column(source: SourceId | str, window_size: int) -> str:
    """Name of the moving-average column, e.g. ``apple_20day_avg``."""
    return f"{source}_{window_size}day_avg"


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


class YearRange(FrozenModel):
    """Exclusive year bounds; a row is kept when ``after < year < before``.

    :param after: Exclusive lower bound.
    :param before: Exclusive upper bound.
    """

    after: int = 2017
    before: int = 2024

    def contains(self, year: int | None) -> bool:
        if year is None:
            return False
        return self.after < year < self.before


class SourceConfig(FrozenModel):
    """Configuration for one input table.

    :param id: Identifier used to qualify the source's columns.
    :param path: Location of the CSV file.
    :param date_format: Date pattern (``dd/MM/yyyy``) or strptime format.
    """

    id: SourceId
    path: Path
    date_format: str


class OutputConfig(FrozenModel):
    """Configuration for the merged output table.

    :param path: Destination CSV file, overwritten on success.
    :param price_order: Source order of the price columns (None = source order).
    :param average_order: Source order of the average columns (None = source order).
    """

    path: Path
    price_order: list[SourceId] | None = None
    average_order: list[SourceId] | None = None


class PipelineConfig(FrozenModel):
    """Configuration for a full pipeline run.

    :param sources: Input tables in join priority order.
    :param year_range: Years kept by the filter stage.
    :param window_size: Number of rows in each trailing average.
    :param output: Output table settings.
    :param log_level: Logging level.
    """

    sources: list[SourceConfig]
    year_range: YearRange = Field(default_factory=YearRange)
    window_size: int = 20
    output: OutputConfig
    log_level: str = "INFO"

    @property
    def source_ids(self) -> list[SourceId]:
        return [source.id for source in self.sources]


class PipelineResult(FrozenModel):
    """Summary of a completed run.

    :param rows_read: Raw rows read per source.
    :param rows_kept: Rows per source that survived the year filter.
    :param joined_rows: Rows produced by the outer join.
    :param output_rows: Rows written to the sink.
    :param output_path: Where the table was written.
    :param records: Final rows, in output order.
    """

    rows_read: dict[SourceId, int]
    rows_kept: dict[SourceId, int]
    joined_rows: int
    output_rows: int
    output_path: Path
    records: list[FinalRecord] = Field(default_factory=list)
