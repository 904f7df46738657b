"""Configuration loading, schema, and defaults."""

from hardsnap.config.loader import ConfigError, load_config, validate_config
from hardsnap.config.schema import HardsnapConfig

__all__ = [
    "ConfigError",
    "HardsnapConfig",
    "load_config",
    "validate_config",
]
