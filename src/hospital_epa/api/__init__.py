"""API module.

This module provides the Flask JSON API for patients and EPA synchronization.
"""

from .app import Services, app, build_services, get_services, initialize_app, run_server

__all__ = [
    "Services",
    "app",
    "build_services",
    "get_services",
    "initialize_app",
    "run_server",
]
