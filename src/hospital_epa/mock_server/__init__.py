"""Mock EPA server.

This module provides a Flask server emulating the EPA FHIR Patient endpoint
for local development and tests.
"""

from .app import app, initialize_app, run_server
from .config import MockEPAConfig, load_config
from .fhir_endpoint import reset_store, stored_patients

__all__ = [
    "app",
    "initialize_app",
    "run_server",
    "MockEPAConfig",
    "load_config",
    "reset_store",
    "stored_patients",
]
