"""Configuration management for the mock EPA server."""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_FILE = Path("mocks/config.json")
ENV_PREFIX = "MOCK_EPA_"


class MockEPAConfig(BaseModel):
    """Mock EPA server configuration model.

    Configuration precedence:
    1. Environment variables (MOCK_EPA_* prefix)
    2. JSON config file
    3. Default values

    Attributes:
        host: Server host address
        port: HTTP server port
        base_path: Path prefix of the FHIR endpoints
        api_key: Bearer token required from clients (no check when unset)
        response_delay_ms: Response delay in milliseconds (0-5000)
        failure_rate: Probability of answering a FHIR request with HTTP 500 (0.0-1.0)
        log_level: Logging level
        log_path: Log file path
    """

    host: str = Field(default="0.0.0.0", description="Server host address")
    port: int = Field(default=8080, description="HTTP server port")
    base_path: str = Field(default="/fhir", description="FHIR endpoint path prefix")
    api_key: Optional[str] = Field(
        default=None,
        description="Bearer token required from clients; no check when unset",
    )
    response_delay_ms: int = Field(
        default=0,
        ge=0,
        le=5000,
        description="Response delay in milliseconds",
    )
    failure_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Probability of returning HTTP 500 (0.0-1.0)",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_path: str = Field(default="mocks/logs/mock-epa.log", description="Log file path")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(valid_levels)}"
            )
        return v_upper

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Invalid port {v}. Must be between 1 and 65535.")
        return v

    @field_validator("base_path")
    @classmethod
    def validate_base_path(cls, v: str) -> str:
        """Normalize the base path to a leading slash and no trailing slash."""
        v = "/" + v.strip("/")
        return "" if v == "/" else v


def load_config(config_file: Path | None = None) -> MockEPAConfig:
    """Load mock server configuration from file and environment variables.

    Args:
        config_file: Path to configuration JSON file. Defaults to mocks/config.json

    Returns:
        MockEPAConfig instance with merged configuration

    Raises:
        FileNotFoundError: If config file specified but not found
        ValueError: If configuration is invalid
    """
    if config_file is None:
        config_file = DEFAULT_CONFIG_FILE

    config_data = {}
    if config_file.exists():
        try:
            with open(config_file, encoding="utf-8") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Failed to parse configuration file '{config_file}': {e}. "
                f"Ensure the file contains valid JSON."
            )
    elif config_file != DEFAULT_CONFIG_FILE:
        # Only raise if non-default config file was explicitly specified
        raise FileNotFoundError(
            f"Configuration file not found: '{config_file}'. "
            f"Ensure the file exists or check the path."
        )

    # Override with environment variables (MOCK_EPA_ prefix)
    for key in MockEPAConfig.model_fields.keys():
        env_key = f"{ENV_PREFIX}{key.upper()}"
        if env_key in os.environ:
            config_data[key] = os.environ[env_key]

    # pydantic coerces numeric strings from the environment
    try:
        config = MockEPAConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    return config
