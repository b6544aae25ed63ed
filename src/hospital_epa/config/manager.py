"""Configuration manager for loading and managing configuration.

This module provides the main configuration loading and management functionality,
including support for JSON configuration files, environment variable overrides,
and configuration validation.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from hospital_epa.config.defaults import DEFAULT_CONFIG, DEFAULT_CONFIG_PATH
from hospital_epa.config.schema import Config, EPAConfig, TransportConfig
from hospital_epa.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variable prefix for all configuration overrides
ENV_PREFIX = "EPA_"


def _parse_bool(value: str) -> bool:
    """Parse boolean value from string (case-insensitive)."""
    return value.lower() in ("true", "1", "yes", "on")


# (environment suffix, section, field, converter)
ENV_OVERRIDES: list[tuple[str, str, str, Callable[[str], Any]]] = [
    ("BASE_URL", "epa", "base_url", str),
    ("API_KEY", "epa", "api_key", str),
    ("VERIFY_TLS", "transport", "verify_tls", _parse_bool),
    ("TIMEOUT_CONNECT", "transport", "timeout_connect", int),
    ("TIMEOUT_READ", "transport", "timeout_read", int),
    ("MAX_RETRIES", "transport", "max_retries", int),
    ("BACKOFF_FACTOR", "transport", "backoff_factor", float),
    ("LOG_LEVEL", "logging", "level", str),
    ("LOG_FILE", "logging", "log_file", str),
    ("REDACT_PII", "logging", "redact_pii", _parse_bool),
    ("SERVER_HOST", "server", "host", str),
    ("SERVER_PORT", "server", "port", int),
]


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded with the following precedence (highest to lowest):
    1. CLI arguments (handled by caller)
    2. Environment variables (EPA_* prefix, .env file supported)
    3. Configuration file (JSON)
    4. Default values

    Args:
        config_path: Path to configuration file. If None, uses ./config/config.json

    Returns:
        Validated, immutable Config instance

    Raises:
        ConfigurationError: If configuration is invalid or malformed

    Example:
        >>> config = load_config(Path("custom/config.json"))
        >>> config.epa.base_url
        'https://epa.example.com/api'
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(DEFAULT_CONFIG_PATH)

    config_dict = _merge(_default_config(), _load_config_file(config_path))

    _check_sensitive_values(config_dict, config_path)

    config_dict = _apply_env_overrides(config_dict)

    try:
        return Config(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed:\n{e}\n\n"
            f"Fix: Check your configuration file at {config_path} and the "
            f"{ENV_PREFIX}* environment variables."
        )


def _default_config() -> dict[str, Any]:
    # Deep copy of defaults to avoid mutation
    return json.loads(json.dumps(DEFAULT_CONFIG))


def _load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration file, or an empty dict if it does not exist.

    Raises:
        ConfigurationError: If JSON is malformed or the file is unreadable
    """
    if not config_path.exists():
        logger.info(
            f"Config file not found: {config_path}. Using default configuration."
        )
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in config file: {config_path}\n"
            f"Error: {e}\n"
            f"Fix: Check JSON syntax at line {e.lineno}, column {e.colno}"
        )
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file: {config_path}\n"
            f"Error: {e}\n"
            f"Fix: Check file permissions and path"
        )

    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a JSON object at the top level"
        )

    logger.info(f"Loaded configuration from {config_path}")
    return config_dict


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base, section by section."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(base[key], value)
        else:
            base[key] = value
    return base


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides with EPA_ prefix.

    Environment variables follow the pattern: EPA_<FIELD>, for example
    EPA_BASE_URL, EPA_API_KEY, EPA_LOG_LEVEL.

    Raises:
        ConfigurationError: If a numeric override is not a number
    """
    for suffix, section, field, convert in ENV_OVERRIDES:
        env_key = f"{ENV_PREFIX}{suffix}"
        raw = os.getenv(env_key)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError:
            raise ConfigurationError(
                f"Invalid value for {env_key}: '{raw}'. "
                f"Fix: Provide a value of type {convert.__name__}."
            )
        config_dict.setdefault(section, {})[field] = value
        logger.debug(f"Override: {section}.{field} from environment")

    return config_dict


def _check_sensitive_values(config_dict: dict[str, Any], config_path: Path) -> None:
    """Warn when the EPA API key is stored in a configuration file.

    Only a key that differs from the built-in development placeholder is
    reported; secrets belong in EPA_API_KEY.
    """
    api_key = config_dict.get("epa", {}).get("api_key")
    if api_key and api_key != DEFAULT_CONFIG["epa"]["api_key"] and config_path.exists():
        logger.warning(
            "WARNING: EPA API key found in configuration file! "
            "Secrets should be stored in environment variables, not config files. "
            f"Use the {ENV_PREFIX}API_KEY environment variable instead."
        )


def get_epa_config(config: Config) -> EPAConfig:
    """Get EPA connection configuration."""
    return config.epa


def get_transport_config(config: Config) -> TransportConfig:
    """Get transport configuration."""
    return config.transport
