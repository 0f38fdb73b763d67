"""Pipeline exception hierarchy.

All pipeline-specific exceptions derive from :class:`PipelineError` so callers
can catch every fatal run failure uniformly. Malformed values inside a table
never raise; they become missing values instead.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline exceptions.

    Derived exceptions should extend this class so that callers can catch all
    pipeline errors uniformly.
    """


class ConfigError(PipelineError):
    """Raised when configuration files or parameters are invalid."""


class DataSourceError(PipelineError):
    """Raised when an input table cannot be found or read."""


class DataValidationError(PipelineError):
    """Raised when an input table lacks a required column.

    Named DataValidationError to avoid conflict with pydantic's ValidationError.
    """


class StorageError(PipelineError):
    """Raised when writing the output table fails."""


__all__ = [
    "PipelineError",
    "ConfigError",
    "DataSourceError",
    "DataValidationError",
    "StorageError",
]
