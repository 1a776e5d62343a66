"""Configuration loading and validation."""

from .models import (
    ADDRESS_PATTERN,
    # Config models
    AppConfig,
    CallConfig,
    LedgerConfig,
    LoggingConfig,
    NetworkConfig,
    PacingConfig,
)
from .loader import (
    ConfigError,
    default_config_path,
    load_app_config,
    validate_app_config_file,
)

__all__ = [
    "ADDRESS_PATTERN",
    # Config models
    "AppConfig",
    "CallConfig",
    "LedgerConfig",
    "LoggingConfig",
    "NetworkConfig",
    "PacingConfig",
    # Loaders
    "ConfigError",
    "default_config_path",
    "load_app_config",
    "validate_app_config_file",
]
