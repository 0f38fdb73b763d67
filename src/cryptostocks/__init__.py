"""Cryptocurrency and equity price alignment package root."""

from cryptostocks.exceptions import PipelineError

__all__ = ["PipelineError"]
