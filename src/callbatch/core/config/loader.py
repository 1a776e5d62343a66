"""
YAML configuration loading.

``configs/app.yaml`` (or the file named by ``CALLBATCH_CONFIG``) is read
with PyYAML, ``${VAR}`` / ``${VAR:-default}`` references in string values
are filled from the environment, and the result is validated into
AppConfig.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig


DEFAULT_CONFIG_PATH = Path("configs/app.yaml")
CONFIG_PATH_ENV = "CALLBATCH_CONFIG"

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Configuration file missing, unreadable or invalid."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def default_config_path() -> Path:
    """Config path from CALLBATCH_CONFIG, else configs/app.yaml."""
    return Path(os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)


def expand_env(value: Any) -> Any:
    """Substitute environment references in strings, recursing into containers."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group(1), m.group(2) or ""),
            value,
        )
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def format_validation_errors(error: ValidationError) -> list[str]:
    """One ``dotted.location: message`` line per validation error."""
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


def read_config_data(path: Path) -> dict[str, Any]:
    """Parse a YAML config file into a mapping.

    An empty file reads as an empty mapping.

    Raises:
        ConfigError: If the file is missing, unreadable, not YAML, or its
            top level is not a mapping
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def load_app_config(
    path: Path | str | None = None,
    expand_env_vars: bool = True,
) -> AppConfig:
    """Load and validate the application configuration.

    A missing file yields the defaults. A relative ``targets_file`` is
    taken relative to the config file's directory.

    Args:
        path: Config file (default: see default_config_path())
        expand_env_vars: Fill ``${VAR}`` references from the environment

    Raises:
        ConfigError: If the file exists but cannot be used
    """
    path = Path(path) if path is not None else default_config_path()
    if not path.exists():
        return AppConfig()

    data = read_config_data(path)
    if expand_env_vars:
        data = expand_env(data)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details="\n".join(format_validation_errors(e)),
        ) from e

    if config.targets_file and not config.targets_file.is_absolute():
        config.targets_file = path.parent / config.targets_file

    return config


def validate_app_config_file(path: Path | str) -> list[str]:
    """Check a config file without loading it.

    Returns:
        Problems found, empty if the file is valid
    """
    path = Path(path)
    try:
        data = read_config_data(path)
    except ConfigError as e:
        return [str(e)]

    try:
        AppConfig.model_validate(expand_env(data))
    except ValidationError as e:
        return format_validation_errors(e)
    return []
