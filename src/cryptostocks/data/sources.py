"""Tabular sources that feed the pipeline.

This module provides an abstract interface for input tables and a CSV
implementation. Sources only locate the ``date``, ``high`` and ``low``
columns; all parsing happens in the normalization stage.
"""

from __future__ import annotations

import csv
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from cryptostocks.exceptions import DataSourceError, DataValidationError
from cryptostocks.types import RawRecord

logger = logging.getLogger(__name__)

# Columns every source table must expose
REQUIRED_COLUMNS = ("date", "high", "low")


class TableSource(ABC):
    """Abstract base class for input tables.

    All source implementations must inherit from this class and implement
    the `read_records` method.
    """

    @abstractmethod
    def read_records(self) -> Iterator[RawRecord]:
        """Read the table's rows.

        :returns: Iterator of RawRecord objects in file order.
        :raises DataSourceError: If the table cannot be read.
        :raises DataValidationError: If a required column is missing.
        """
        ...


class InMemoryTableSource(TableSource):
    """Source backed by rows already held in memory.

    :param rows: Mappings with at least ``date``, ``high`` and ``low`` keys.
    """

    def __init__(self, rows: list[dict[str, str | None]]) -> None:
        self.rows = rows

    def read_records(self) -> Iterator[RawRecord]:
        for row in self.rows:
            missing = [col for col in REQUIRED_COLUMNS if col not in row]
            if missing:
                raise DataValidationError(f"Row {row} is missing columns: {missing}")
            yield RawRecord(date=row["date"], high=row["high"], low=row["low"])


class CSVTableSource(TableSource):
    """Source that reads a header-bearing CSV file.

    Header names are matched case-insensitively after stripping whitespace,
    so ``Date``, ``HIGH`` and `` low`` all resolve. Other columns are ignored.

    :param path: Path to the CSV file.
    :param delimiter: CSV delimiter (default: ",").
    """

    def __init__(self, path: str | Path, delimiter: str = ",") -> None:
        self.path = Path(path)
        self.delimiter = delimiter

    def _resolve_columns(self, header: list[str]) -> dict[str, int]:
        """Map each required column to its index in the header row."""
        positions: dict[str, int] = {}
        for idx, name in enumerate(header):
            key = name.strip().lower()
            if key in REQUIRED_COLUMNS and key not in positions:
                positions[key] = idx

        missing = [col for col in REQUIRED_COLUMNS if col not in positions]
        if missing:
            raise DataValidationError(
                f"CSV file {self.path} is missing required columns: {missing}"
            )
        return positions

    def read_records(self) -> Iterator[RawRecord]:
        """Read rows from the CSV file.

        :returns: Iterator of RawRecord objects.
        :raises DataSourceError: If the file is missing or unreadable,
            or is not UTF-8 text.
        :raises DataValidationError: If the header lacks a required column.
        """
        if not self.path.exists():
            raise DataSourceError(f"CSV file not found: {self.path}")

        count = 0
        try:
            # utf-8-sig drops the byte-order mark some exporters prepend
            with open(self.path, newline="", encoding="utf-8-sig") as f:
                reader = csv.reader(f, delimiter=self.delimiter)
                header = next(reader, None)
                if header is None:
                    raise DataValidationError(f"CSV file {self.path} has no header row")
                positions = self._resolve_columns(header)

                for row in reader:
                    if not row:
                        continue
                    count += 1
                    yield RawRecord(
                        date=_cell(row, positions["date"]),
                        high=_cell(row, positions["high"]),
                        low=_cell(row, positions["low"]),
                    )

        except csv.Error as e:
            raise DataSourceError(f"CSV parsing error in {self.path}: {e}") from e
        except UnicodeDecodeError as e:
            raise DataSourceError(f"CSV file {self.path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise DataSourceError(f"Failed to read CSV file {self.path}: {e}") from e

        logger.debug("Read %d rows from %s", count, self.path)


def _cell(row: list[str], idx: int) -> str | None:
    """Return a stripped cell value, or None for short rows and empty cells."""
    if idx >= len(row):
        return None
    value = row[idx].strip()
    return value or None
