"""CLI command implementations.

Each command module provides:
- Configuration loading and validation
- Defaults for the standard run
"""

from cryptostocks.commands.merge_prices import (default_config,
                                                load_merge_prices_config)

__all__ = [
    "default_config",
    "load_merge_prices_config",
]
