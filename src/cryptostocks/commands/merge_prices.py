"""Configuration for the merge-prices command.

Example config file (merge_prices.yaml):

    sources:
      - id: "apple"
        path: "data/aapl_2014_2023.csv"
        date_format: "yyyy-MM-dd"
      - id: "bitcoin"
        path: "data/bitcoin.csv"
        date_format: "dd/MM/yyyy"
      - id: "ethereum"
        path: "data/ethereum.csv"
        date_format: "dd/MM/yyyy"
    year_range:
      after: 2017
      before: 2024
    window_size: 20
    output:
      path: "output/crypto_stocks.csv"
      price_order: ["apple", "ethereum", "bitcoin"]     # Optional
      average_order: ["apple", "bitcoin", "ethereum"]   # Optional
    logging:
      level: "INFO"

Relative paths are resolved against the directory holding the config file.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from cryptostocks.exceptions import ConfigError
from cryptostocks.pipeline.normalize import to_strptime_format
from cryptostocks.types import (OutputConfig, PipelineConfig, SourceConfig,
                                SourceId, YearRange)

# Valid logging levels
VALID_LOG_LEVELS = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

# Source ids become column prefixes, so keep them to plain identifiers
_SOURCE_ID = re.compile(r"^[a-z][a-z0-9_]*$")

# Layout of the original job: Apple stock with Bitcoin and Ethereum prices
DEFAULT_SOURCES = (
    ("apple", "aapl_2014_2023.csv", "yyyy-MM-dd"),
    ("bitcoin", "Bitcoin Historical Data.csv", "dd/MM/yyyy"),
    ("ethereum", "Ethereum Historical Data.csv", "dd/MM/yyyy"),
)
DEFAULT_PRICE_ORDER = ("apple", "ethereum", "bitcoin")
DEFAULT_AVERAGE_ORDER = ("apple", "bitcoin", "ethereum")


def default_config(
    data_dir: str | Path = ".",
    output_path: str | Path = "output/crypto_stocks.csv",
) -> PipelineConfig:
    """Build the standard Apple/Bitcoin/Ethereum configuration.

    :param data_dir: Directory holding the three source CSV files.
    :param output_path: Destination of the merged table.
    :returns: Pipeline configuration.
    """
    data_dir = Path(data_dir)
    return PipelineConfig(
        sources=[
            SourceConfig(id=SourceId(sid), path=data_dir / name, date_format=fmt)
            for sid, name, fmt in DEFAULT_SOURCES
        ],
        output=OutputConfig(
            path=Path(output_path),
            price_order=[SourceId(s) for s in DEFAULT_PRICE_ORDER],
            average_order=[SourceId(s) for s in DEFAULT_AVERAGE_ORDER],
        ),
    )


def _resolve_path(value: Any, base_dir: Path, key: str) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{key}' must be a non-empty string")
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _parse_source(raw_source: Any, idx: int, base_dir: Path) -> SourceConfig:
    """Parse one entry of the ``sources`` list."""
    if not isinstance(raw_source, dict):
        raise ConfigError(f"'sources[{idx}]' must be a mapping")

    for field in ("id", "path", "date_format"):
        if field not in raw_source:
            raise ConfigError(f"'sources[{idx}]' is missing required field: {field}")

    source_id = raw_source["id"]
    if not isinstance(source_id, str) or not _SOURCE_ID.match(source_id):
        raise ConfigError(
            f"'sources[{idx}].id' must be a lowercase identifier, got {source_id!r}"
        )

    date_format = raw_source["date_format"]
    if not isinstance(date_format, str):
        raise ConfigError(f"'sources[{idx}].date_format' must be a string")
    # Surfaces unsupported pattern letters at load time
    to_strptime_format(date_format)

    return SourceConfig(
        id=SourceId(source_id),
        path=_resolve_path(raw_source["path"], base_dir, f"sources[{idx}].path"),
        date_format=date_format,
    )


def _parse_order(
    raw_output: dict[str, Any],
    key: str,
    source_ids: list[SourceId],
) -> list[SourceId] | None:
    raw_order = raw_output.get(key)
    if raw_order is None:
        return None
    if not isinstance(raw_order, list) or not all(isinstance(s, str) for s in raw_order):
        raise ConfigError(f"'output.{key}' must be a list of source ids")
    if sorted(raw_order) != sorted(source_ids):
        raise ConfigError(
            f"'output.{key}' must list each source exactly once. "
            f"Sources: {source_ids}"
        )
    return [SourceId(s) for s in raw_order]


def load_merge_prices_config(config_path: str | Path) -> PipelineConfig:
    """Parse and validate a merge-prices configuration file.

    :param config_path: Path to YAML configuration file.
    :returns: Validated PipelineConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)

    # Read and parse YAML
    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    base_dir = config_path.resolve().parent

    # Validate required fields
    for field in ("sources", "output"):
        if field not in raw_config:
            raise ConfigError(f"Missing required field: {field}")

    # Parse sources
    raw_sources = raw_config["sources"]
    if not isinstance(raw_sources, list) or len(raw_sources) == 0:
        raise ConfigError("'sources' must be a non-empty list")
    sources = [_parse_source(raw, idx, base_dir) for idx, raw in enumerate(raw_sources)]

    source_ids = [s.id for s in sources]
    duplicates = sorted({s for s in source_ids if source_ids.count(s) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate source ids: {duplicates}")

    # Parse year_range (optional)
    raw_years = raw_config.get("year_range", {})
    if not isinstance(raw_years, dict):
        raise ConfigError("'year_range' must be a mapping with 'after' and 'before'")
    after = raw_years.get("after", 2017)
    before = raw_years.get("before", 2024)
    if any(not isinstance(v, int) or isinstance(v, bool) for v in (after, before)):
        raise ConfigError("'year_range.after' and 'year_range.before' must be integers")
    if after >= before:
        raise ConfigError("'year_range.after' must be less than 'year_range.before'")

    # Parse window_size (optional)
    window_size = raw_config.get("window_size", 20)
    if not isinstance(window_size, int) or isinstance(window_size, bool) or window_size <= 0:
        raise ConfigError("'window_size' must be a positive integer")

    # Parse output
    raw_output = raw_config["output"]
    if not isinstance(raw_output, dict):
        raise ConfigError("'output' must be a mapping")
    if "path" not in raw_output:
        raise ConfigError("'output.path' is required")
    output = OutputConfig(
        path=_resolve_path(raw_output["path"], base_dir, "output.path"),
        price_order=_parse_order(raw_output, "price_order", source_ids),
        average_order=_parse_order(raw_output, "average_order", source_ids),
    )

    # Parse logging (optional)
    raw_logging = raw_config.get("logging", {})
    if not isinstance(raw_logging, dict):
        raise ConfigError("'logging' must be a mapping")

    log_level = str(raw_logging.get("level", "INFO")).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level '{log_level}'. "
            f"Valid options: {sorted(VALID_LOG_LEVELS)}"
        )

    return PipelineConfig(
        sources=sources,
        year_range=YearRange(after=after, before=before),
        window_size=window_size,
        output=output,
        log_level=log_level,
    )
