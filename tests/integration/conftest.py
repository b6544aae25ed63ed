"""Integration test fixtures and configuration.

This module provides fixtures for integration tests that talk HTTP to a live
mock EPA server. The server runs in a background thread for the duration of
each test and is shut down afterwards.
"""

import logging
import socket
import threading
import time
from typing import Generator

import pytest
import requests
from werkzeug.serving import make_server

from hospital_epa.config.schema import EPAConfig, TransportConfig
from hospital_epa.epa.client import EPAClient
from hospital_epa.mock_server.app import app, initialize_app
from hospital_epa.mock_server.config import MockEPAConfig
from hospital_epa.mock_server.fhir_endpoint import reset_store

logger = logging.getLogger(__name__)

MOCK_API_KEY = "integration-token"


# =============================================================================
# Utility Functions
# =============================================================================


def find_free_port() -> int:
    """Find an available port on localhost.

    Returns:
        int: An available port number.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


def wait_for_server(url: str, timeout: float = 10.0, interval: float = 0.1) -> bool:
    """Wait for server to become available.

    Args:
        url: URL to check (e.g., health endpoint).
        timeout: Maximum time to wait in seconds.
        interval: Time between checks in seconds.

    Returns:
        bool: True if server became available, False if timeout.
    """
    start_time = time.time()
    while time.time() - start_time < timeout:
        try:
            response = requests.get(url, timeout=1)
            if response.status_code == 200:
                return True
        except requests.exceptions.RequestException:
            pass
        time.sleep(interval)
    return False


# =============================================================================
# Mock Server Fixtures
# =============================================================================

@pytest.fixture
def unused_port() -> int:
    """Port with nothing listening on it."""
    return find_free_port()



@pytest.fixture
def mock_epa_config(tmp_path) -> MockEPAConfig:
    """Mock EPA configuration on a free port with a bearer token."""
    return MockEPAConfig(
        host="127.0.0.1",
        port=find_free_port(),
        api_key=MOCK_API_KEY,
        log_level="WARNING",
        log_path=str(tmp_path / "mock-epa.log"),
    )


@pytest.fixture
def mock_epa_server(mock_epa_config: MockEPAConfig) -> Generator[str, None, None]:
    """Start the mock EPA server in a background thread.

    Yields:
        str: FHIR base URL of the running server
    """
    reset_store()
    initialize_app(mock_epa_config)

    server = make_server(mock_epa_config.host, mock_epa_config.port, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    root_url = f"http://{mock_epa_config.host}:{mock_epa_config.port}"
    if not wait_for_server(f"{root_url}/health"):
        server.shutdown()
        pytest.fail(f"Mock EPA server did not start on {root_url}")

    logger.info(f"Mock EPA server running on {root_url}")
    yield f"{root_url}{mock_epa_config.base_path}"

    server.shutdown()
    thread.join(timeout=5)
    reset_store()


@pytest.fixture
def live_epa_config(mock_epa_server: str) -> EPAConfig:
    return EPAConfig(base_url=mock_epa_server, api_key=MOCK_API_KEY)


@pytest.fixture
def live_transport_config() -> TransportConfig:
    return TransportConfig(timeout_connect=2, timeout_read=5, max_retries=0)


@pytest.fixture
def live_client(
    live_epa_config: EPAConfig, live_transport_config: TransportConfig
) -> Generator[EPAClient, None, None]:
    """Real EPAClient pointed at the running mock server."""
    with EPAClient(live_epa_config, live_transport_config) as client:
        yield client
