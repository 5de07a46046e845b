"""
Configuration management for poold.

This module provides:
- The daemon configuration model with per-field defaults
- Loading from keyword arguments, environment variables and YAML files
- Normalization: path cleanup, network namespacing, conflict detection and
  migration of the deprecated lnd macaroon directory option
"""

from pathlib import Path
from typing import Any, Optional, Union

from . import defaults
from .exceptions import (
    ConfigConflictError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from .paths import app_data_dir, clean_and_expand_path
from .settings import (
    LndConfig,
    Network,
    PooldConfig,
    format_duration,
    parse_debug_level,
    parse_duration,
)
from .validation import resolve_lnd_macaroon, validate
from ..exceptions import ConfigurationError


def default_config() -> PooldConfig:
    """Return a configuration with every option at its default."""
    return PooldConfig()


def load_config(
    yaml_file: Optional[Union[str, Path]] = None,
    env_prefix: str = "POOLD_",
    **overrides: Any,
) -> PooldConfig:
    """
    Load and normalize the daemon configuration.

    Priority order:
    1. Keyword overrides
    2. YAML file (if provided) or environment variables
    3. Defaults
    """
    if yaml_file and Path(yaml_file).exists():
        config = PooldConfig.from_yaml(yaml_file)
    else:
        config = PooldConfig.from_env(env_prefix)

    if overrides:
        try:
            config = PooldConfig(
                _env_prefix=env_prefix,
                **{**config.model_dump(exclude_unset=True), **overrides},
            )
        except ValueError as e:
            raise InvalidConfigurationError(f"Configuration validation failed: {e}")

    return validate(config)


__all__ = [
    "ConfigConflictError",
    "ConfigurationError",
    "InvalidConfigurationError",
    "LndConfig",
    "MissingConfigurationError",
    "Network",
    "PooldConfig",
    "app_data_dir",
    "clean_and_expand_path",
    "default_config",
    "defaults",
    "format_duration",
    "load_config",
    "parse_debug_level",
    "parse_duration",
    "resolve_lnd_macaroon",
    "validate",
]
