"""Input and output table collaborators."""

from cryptostocks.data.sinks import CSVTableSink, InMemoryTableSink, TableSink
from cryptostocks.data.sources import (REQUIRED_COLUMNS, CSVTableSource,
                                       InMemoryTableSource, TableSource)

__all__ = [
    "REQUIRED_COLUMNS",
    "TableSource",
    "CSVTableSource",
    "InMemoryTableSource",
    "TableSink",
    "CSVTableSink",
    "InMemoryTableSink",
]
