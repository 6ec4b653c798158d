"""Configuration loading from TOML files and environment variables."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr, ValidationError

from memloop.config.models import ConfigError, MemloopConfig
from memloop.config.paths import get_config_path

logger = logging.getLogger(__name__)


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("memloop.toml"),  # Current directory
        get_config_path(),  # ~/.memloop/config.toml (or MEMLOOP_HOME)
        Path("/etc/memloop/config.toml"),  # System-wide
    ]


def _get_nested(config: dict[str, Any], *keys: str) -> dict[str, Any] | None:
    """Get nested dict by keys, returning None if any key is missing."""
    section = config
    for key in keys:
        if key not in section or section[key] is None:
            return None
        section = section[key]
    return section


def _set_secret_from_env(section: dict[str, Any], key: str, env_var: str) -> None:
    """Set a secret value from environment if not already set."""
    if section.get(key) is None:
        value = os.environ.get(env_var)
        if value:
            section[key] = SecretStr(value)


def _resolve_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Resolve secrets from environment variables where not set in config."""
    if (section := _get_nested(config, "sentry")) is not None:
        _set_secret_from_env(section, "dsn", "SENTRY_DSN")
    elif os.environ.get("SENTRY_DSN"):
        config["sentry"] = {"dsn": SecretStr(os.environ["SENTRY_DSN"])}
    return config


def load_config(path: Path | None = None) -> MemloopConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations
            and falls back to the built-in defaults when none exists.

    Returns:
        Validated MemloopConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigError: If the config file cannot be parsed or validated.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    if config_path is None:
        logger.debug("config_file_not_found_using_defaults")
        raw_config: dict[str, Any] = {}
    else:
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw_config = _resolve_env_secrets(raw_config)

    try:
        return MemloopConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def get_default_config() -> MemloopConfig:
    """Get a default configuration for development/testing."""
    return MemloopConfig()
