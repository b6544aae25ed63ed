"""Config module.

This module provides configuration management functionality.
"""

from hospital_epa.config.manager import (
    get_epa_config,
    get_transport_config,
    load_config,
)
from hospital_epa.config.schema import (
    Config,
    EPAConfig,
    LoggingConfig,
    ServerConfig,
    TransportConfig,
)

__all__ = [
    # Main configuration loading
    "load_config",
    # Helper functions
    "get_epa_config",
    "get_transport_config",
    # Configuration models
    "Config",
    "EPAConfig",
    "LoggingConfig",
    "ServerConfig",
    "TransportConfig",
]
