"""Alignment and rolling-aggregation stages."""

from cryptostocks.pipeline.align import (aggregate_by_date, align_sources,
                                         full_outer_join, qualify_records)
from cryptostocks.pipeline.driver import (PipelineContext, format_preview,
                                          prepare_source, run_pipeline,
                                          to_output_row)
from cryptostocks.pipeline.normalize import (DateFormat, normalize_record,
                                             normalize_records, parse_price,
                                             to_strptime_format)
from cryptostocks.pipeline.rolling import add_moving_averages, trailing_mean

__all__ = [
    "DateFormat",
    "to_strptime_format",
    "parse_price",
    "normalize_record",
    "normalize_records",
    "qualify_records",
    "full_outer_join",
    "align_sources",
    "aggregate_by_date",
    "trailing_mean",
    "add_moving_averages",
    "PipelineContext",
    "prepare_source",
    "to_output_row",
    "run_pipeline",
    "format_preview",
]
