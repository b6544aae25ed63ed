"""Configuration schema models using pydantic.

This module defines the configuration structure and validation rules using pydantic.
All configuration values are validated according to the schema defined here.
Models are frozen: a loaded configuration is immutable for the process lifetime.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EPAConfig(BaseModel):
    """Connection settings for the remote EPA system.

    Attributes:
        base_url: EPA FHIR API base URL (without trailing slash)
        api_key: Bearer token sent on every request
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(..., description="EPA FHIR API base URL")
    api_key: str = Field(..., description="EPA bearer token")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL is HTTP/HTTPS and strip the trailing slash.

        Raises:
            ValueError: If URL does not start with http:// or https://
        """
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid URL: {v}. Must start with http:// or https://"
            )
        return v.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("api_key must not be blank")
        return v


class TransportConfig(BaseModel):
    """Configuration for HTTP/HTTPS transport.

    Attributes:
        verify_tls: Whether to verify TLS certificates
        timeout_connect: Connection timeout in seconds
        timeout_read: Read timeout in seconds
        max_retries: Maximum retry attempts for throttled/unavailable responses
        backoff_factor: Exponential backoff factor for retries
    """

    model_config = ConfigDict(frozen=True)

    verify_tls: bool = True
    timeout_connect: int = Field(
        default=10,
        ge=1,
        description="Connection timeout in seconds"
    )
    timeout_read: int = Field(
        default=30,
        ge=1,
        description="Read timeout in seconds"
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Maximum retry attempts"
    )
    backoff_factor: float = Field(
        default=0.5,
        ge=0.0,
        description="Exponential backoff factor"
    )


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file
        redact_pii: Whether to redact PII from logs
    """

    model_config = ConfigDict(frozen=True)

    level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    log_file: Path = Field(
        default=Path("logs/hospital-epa.log"),
        description="Log file path"
    )
    redact_pii: bool = Field(
        default=True,
        description="Redact PII from logs"
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level and normalize it to upper case.

        Raises:
            ValueError: If log level is not valid
        """
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        return v_upper


class ServerConfig(BaseModel):
    """Configuration for the patient records API server.

    Attributes:
        host: Bind address
        port: Bind port
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(default="127.0.0.1", description="API server host address")
    port: int = Field(default=5000, ge=1, le=65535, description="API server port")


class Config(BaseModel):
    """Root configuration model.

    Example:
        >>> config = Config(
        ...     epa=EPAConfig(
        ...         base_url="https://epa.example.com/api",
        ...         api_key="secret",
        ...     )
        ... )
        >>> config.epa.base_url
        'https://epa.example.com/api'
    """

    model_config = ConfigDict(frozen=True)

    epa: EPAConfig
    transport: TransportConfig = TransportConfig()
    logging: LoggingConfig = LoggingConfig()
    server: ServerConfig = ServerConfig()
