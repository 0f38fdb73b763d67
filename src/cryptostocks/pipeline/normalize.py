"""Normalization of raw source rows.

Turns loosely typed :class:`RawRecord` rows into :class:`NormalizedRecord`
rows: the date is parsed with the source's own format, prices lose their
thousands separators and become floats, and the calendar year is derived
from the date. A value that fails to parse becomes ``None``; nothing in this
module raises for bad data.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Iterable

from cryptostocks.exceptions import ConfigError
from cryptostocks.types import NormalizedRecord, RawRecord

logger = logging.getLogger(__name__)

# strptime directive for each supported date pattern letter
_PATTERN_DIRECTIVES = {
    "y": "%Y",
    "M": "%m",
    "d": "%d",
    "H": "%H",
    "m": "%M",
    "s": "%S",
}

# Runs whose directive depends on their length (MMMM and longer use %B)
_LENGTH_DIRECTIVES = {
    ("y", 2): "%y",
    ("M", 3): "%b",
}

_PATTERN_TOKEN = re.compile(r"'[^']*'|([A-Za-z])\1*|.", re.DOTALL)

# Single-letter fields print without zero padding (``d/M/yyyy`` -> ``1/2/2020``)
_UNPADDED_FIELDS = {
    "d": "day",
    "M": "month",
}


def _translate(pattern: str) -> list[tuple[str, str | None]]:
    """Split a date pattern into ``(directive, unpadded_field)`` parts.

    ``unpadded_field`` names the :class:`date` attribute to print as a bare
    number, or is None when ``directive`` is used as is.
    """
    parts: list[tuple[str, str | None]] = []
    for match in _PATTERN_TOKEN.finditer(pattern):
        token = match.group(0)
        if token.startswith("'"):
            parts.append((token[1:-1] or "'", None))
        elif token[0].isalpha():
            letter = token[0]
            directive = _PATTERN_DIRECTIVES.get(letter)
            if directive is None:
                raise ConfigError(
                    f"Unsupported letter '{letter}' in date format '{pattern}'. "
                    f"Supported letters: {sorted(_PATTERN_DIRECTIVES)}"
                )
            if letter == "M" and len(token) >= 4:
                directive = "%B"
            directive = _LENGTH_DIRECTIVES.get((letter, len(token)), directive)
            unpadded = _UNPADDED_FIELDS.get(letter) if len(token) == 1 else None
            parts.append((directive, unpadded))
        else:
            parts.append((token, None))
    return parts


def to_strptime_format(pattern: str) -> str:
    """Translate a date pattern such as ``dd/MM/yyyy`` to ``%d/%m/%Y``.

    Patterns that already contain a ``%`` directive are returned unchanged.
    Text in single quotes is copied literally.

    :param pattern: Date pattern or strptime format.
    :returns: Equivalent strptime format.
    :raises ConfigError: If the pattern uses an unsupported letter.
    """
    if "%" in pattern:
        return pattern
    if not pattern:
        raise ConfigError("Date format must not be empty")

    return "".join(directive for directive, _ in _translate(pattern))


class DateFormat:
    """Compiled date format for one source.

    :param pattern: Date pattern (``yyyy-MM-dd``) or strptime format.
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self.strptime_format = to_strptime_format(pattern)
        self._parts = [] if "%" in pattern else _translate(pattern)

    def parse(self, value: str | None) -> date | None:
        """Parse a date string, returning None when it does not match."""
        if value is None:
            return None
        try:
            return datetime.strptime(value.strip(), self.strptime_format).date()
        except ValueError:
            return None

    def format(self, value: date) -> str:
        """Render a date in this format, the inverse of :meth:`parse`."""
        if not self._parts:
            return value.strftime(self.strptime_format)
        return "".join(
            str(getattr(value, field)) if field else value.strftime(directive)
            for directive, field in self._parts
        )

    def __repr__(self) -> str:
        return f"DateFormat({self.pattern!r})"


def parse_price(value: str | None) -> float | None:
    """Parse a price string, ignoring thousands separators.

    ``"1,234.50"`` and ``"1234.50"`` give the same value. Unparseable input,
    NaN and infinities give None.
    """
    if value is None:
        return None
    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_record(record: RawRecord, date_format: DateFormat) -> NormalizedRecord:
    """Normalize a single raw row."""
    parsed = date_format.parse(record.date)
    return NormalizedRecord(
        date=parsed,
        year=parsed.year if parsed is not None else None,
        high=parse_price(record.high),
        low=parse_price(record.low),
    )


def normalize_records(
    records: Iterable[RawRecord],
    date_format: DateFormat | str,
) -> list[NormalizedRecord]:
    """Normalize every row of one source.

    :param records: Raw rows of a single source.
    :param date_format: The source's date format.
    :returns: Normalized rows in input order.
    """
    if isinstance(date_format, str):
        date_format = DateFormat(date_format)

    normalized = [normalize_record(record, date_format) for record in records]

    missing_dates = sum(1 for r in normalized if r.date is None)
    if missing_dates:
        logger.debug(
            "%d of %d rows did not match date format %r",
            missing_dates,
            len(normalized),
            date_format.pattern,
        )
    return normalized
