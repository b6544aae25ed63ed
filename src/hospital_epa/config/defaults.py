"""Default configuration values.

This module defines the default configuration values used when no configuration
file is provided or when configuration values are not specified.
"""

from typing import Any

# Default configuration dictionary
# This is used as a fallback when no configuration file is present
DEFAULT_CONFIG: dict[str, Any] = {
    "epa": {
        # Default to the local mock EPA server
        "base_url": "http://localhost:8080/fhir",
        # Placeholder token accepted by the mock server; override via EPA_API_KEY
        "api_key": "dev-epa-key",
    },
    "transport": {
        "verify_tls": True,
        "timeout_connect": 10,
        "timeout_read": 30,
        # Retries apply to 429/502/503/504 only
        "max_retries": 2,
        "backoff_factor": 0.5,
    },
    "logging": {
        "level": "INFO",
        "log_file": "logs/hospital-epa.log",
        # Patient data is redacted unless explicitly disabled
        "redact_pii": True,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 5000,
    },
}

# Default configuration file path
DEFAULT_CONFIG_PATH = "config/config.json"
