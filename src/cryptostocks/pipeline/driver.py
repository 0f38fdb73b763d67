"""Pipeline driver.

Runs the stages in a fixed order: normalize and qualify each source, outer
join them, aggregate by date, add moving averages, then write the table.
Each stage receives only the :class:`PipelineContext` values it needs, so
stages can be exercised on their own.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from pydantic import Field

from cryptostocks.data.sinks import CSVTableSink, TableSink
from cryptostocks.data.sources import CSVTableSource, TableSource
from cryptostocks.exceptions import DataSourceError
from cryptostocks.pipeline.align import (aggregate_by_date, align_sources,
                                         qualify_records)
from cryptostocks.pipeline.normalize import DateFormat, normalize_records
from cryptostocks.pipeline.rolling import add_moving_averages
from cryptostocks.types import (FinalRecord, FrozenModel, PipelineConfig,
                                PipelineResult, QualifiedRecord, RawRecord,
                                SourceId, YearRange, average_column,
                                high_column, low_column)

logger = logging.getLogger(__name__)


class PipelineContext(FrozenModel):
    """Settings shared by the pipeline stages.

    :param sources: Source ids in join priority order.
    :param date_formats: Date format pattern per source.
    :param year_range: Years kept by the filter stage.
    :param window_size: Rows per trailing average.
    :param price_order: Source order of the output price columns.
    :param average_order: Source order of the output average columns.
    """

    sources: list[SourceId]
    date_formats: dict[SourceId, str]
    year_range: YearRange = Field(default_factory=YearRange)
    window_size: int = 20
    price_order: list[SourceId]
    average_order: list[SourceId]

    @classmethod
    def from_config(cls, config: PipelineConfig) -> PipelineContext:
        return cls(
            sources=config.source_ids,
            date_formats={s.id: s.date_format for s in config.sources},
            year_range=config.year_range,
            window_size=config.window_size,
            price_order=config.output.price_order or config.source_ids,
            average_order=config.output.average_order or config.source_ids,
        )

    def output_columns(self) -> list[str]:
        columns = ["date", "year"]
        for source in self.price_order:
            columns.extend([high_column(source), low_column(source)])
        columns.extend(average_column(s, self.window_size) for s in self.average_order)
        return columns


def prepare_source(
    records: Sequence[RawRecord],
    source: SourceId,
    context: PipelineContext,
) -> list[QualifiedRecord]:
    """Normalize one source's raw rows and apply the rename and year filter."""
    normalized = normalize_records(records, DateFormat(context.date_formats[source]))
    return qualify_records(normalized, source, context.year_range)


def to_output_row(record: FinalRecord, context: PipelineContext) -> dict[str, Any]:
    """Flatten a final row into output column names."""
    row: dict[str, Any] = {"date": record.date, "year": record.year}
    for source in context.price_order:
        row[high_column(source)] = record.high(source)
        row[low_column(source)] = record.low(source)
    for source in context.average_order:
        row[average_column(source, context.window_size)] = record.average(source)
    return row


def run_pipeline(
    config: PipelineConfig,
    sources: Mapping[SourceId, TableSource] | None = None,
    sink: TableSink | None = None,
) -> PipelineResult:
    """Read every source, build the merged table and write it.

    Any source or sink failure aborts the run before anything is written.

    :param config: Pipeline configuration.
    :param sources: Table per source id (default: CSV files from config).
    :param sink: Output table (default: CSV file from config).
    :returns: Summary of the run.
    :raises PipelineError: If reading or writing fails.
    """
    context = PipelineContext.from_config(config)
    if sources is None:
        sources = {s.id: CSVTableSource(s.path) for s in config.sources}
    if sink is None:
        sink = CSVTableSink(config.output.path)

    missing = [s for s in context.sources if s not in sources]
    if missing:
        raise DataSourceError(f"No table provided for sources: {missing}")

    raw_tables: dict[SourceId, list[RawRecord]] = {}
    for source_id in context.sources:
        raw_tables[source_id] = list(sources[source_id].read_records())
        logger.info("Read %d rows for %s", len(raw_tables[source_id]), source_id)

    qualified = {
        source_id: prepare_source(raw_tables[source_id], source_id, context)
        for source_id in context.sources
    }
    for source_id, records in qualified.items():
        logger.info(
            "Kept %d of %d rows for %s",
            len(records),
            len(raw_tables[source_id]),
            source_id,
        )

    joined = align_sources([qualified[s] for s in context.sources])
    aggregated = aggregate_by_date(joined)
    logger.info("Aligned %d joined rows into %d dates", len(joined), len(aggregated))

    final = add_moving_averages(aggregated, context.sources, context.window_size)
    written = sink.write_rows(
        context.output_columns(),
        (to_output_row(record, context) for record in final),
    )

    return PipelineResult(
        rows_read={s: len(rows) for s, rows in raw_tables.items()},
        rows_kept={s: len(rows) for s, rows in qualified.items()},
        joined_rows=len(joined),
        output_rows=written,
        output_path=config.output.path,
        records=final,
    )


def format_preview(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[str],
    limit: int = 20,
) -> str:
    """Render the first ``limit`` rows as an ASCII table.

    Missing values print as ``null``.
    """
    shown = [
        ["null" if row.get(col) is None else str(row.get(col)) for col in columns]
        for row in rows[:limit]
    ]
    widths = [
        max([len(col)] + [len(cells[idx]) for cells in shown])
        for idx, col in enumerate(columns)
    ]
    border = "+" + "+".join("-" * w for w in widths) + "+"

    lines = [border, "|" + "|".join(c.rjust(w) for c, w in zip(columns, widths)) + "|", border]
    for cells in shown:
        lines.append("|" + "|".join(c.rjust(w) for c, w in zip(cells, widths)) + "|")
    lines.append(border)
    if len(rows) > limit:
        lines.append(f"only showing top {limit} rows")
    return "\n".join(lines)
