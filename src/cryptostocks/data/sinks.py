"""Tabular sinks that receive the pipeline's merged output."""

from __future__ import annotations

import csv
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Iterable

from cryptostocks.exceptions import StorageError

logger = logging.getLogger(__name__)


class TableSink(ABC):
    """Abstract base class for output tables."""

    @abstractmethod
    def write_rows(self, columns: list[str], rows: Iterable[dict[str, Any]]) -> int:
        """Write a complete table, replacing any previous contents.

        :param columns: Column names in output order.
        :param rows: Row mappings keyed by column name.
        :returns: Number of rows written.
        :raises StorageError: If the destination cannot be written.
        """
        ...


class InMemoryTableSink(TableSink):
    """Sink that keeps the last written table in memory."""

    def __init__(self) -> None:
        self.columns: list[str] = []
        self.rows: list[dict[str, Any]] = []

    def write_rows(self, columns: list[str], rows: Iterable[dict[str, Any]]) -> int:
        self.columns = list(columns)
        self.rows = [{col: row.get(col) for col in columns} for row in rows]
        return len(self.rows)


class CSVTableSink(TableSink):
    """Sink that writes a single CSV file with a header row.

    Missing values are written as empty cells and dates in ISO format. The
    table is written to a temporary file in the same directory and moved
    into place once complete, so a failed write leaves the old file intact.

    :param path: Destination file path.
    :param delimiter: CSV delimiter (default: ",").
    """

    def __init__(self, path: str | Path, delimiter: str = ",") -> None:
        self.path = Path(path)
        self.delimiter = delimiter

    def write_rows(self, columns: list[str], rows: Iterable[dict[str, Any]]) -> int:
        count = 0
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f, delimiter=self.delimiter)
                writer.writerow(columns)
                for row in rows:
                    writer.writerow([_format_cell(row.get(col)) for col in columns])
                    count += 1
            # mkstemp creates the file 0600; give it the mode open() would
            os.chmod(tmp_name, _default_file_mode())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Failed to write CSV file {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)

        logger.info("Wrote %d rows to %s", count, self.path)
        return count


def _default_file_mode() -> int:
    """Permissions of a newly created file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
