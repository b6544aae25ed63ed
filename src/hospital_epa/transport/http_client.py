"""HTTP session factory for EPA FHIR calls.

This module builds the single requests.Session an EPAClient uses for its
lifetime: bearer authentication and FHIR content headers, TLS 1.2+, a
connection pool and a retry policy for throttled or unavailable responses.
"""

import logging
import ssl
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from urllib3.util.ssl_ import create_urllib3_context

from hospital_epa.config.schema import EPAConfig, TransportConfig

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"

DEFAULT_POOL_CONNECTIONS = 4

# Only idempotent methods are retried; a retried POST could create duplicates
RETRY_METHODS = ["GET", "PUT"]
RETRY_STATUSES = [429, 502, 503, 504]


class TLS12Adapter(HTTPAdapter):
    """HTTPAdapter enforcing a minimum of TLS 1.2 for HTTPS connections.

    Example:
        >>> session = requests.Session()
        >>> session.mount("https://", TLS12Adapter(max_retries=Retry(total=2)))
    """

    def init_poolmanager(self, *args, **kwargs):
        context = create_urllib3_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        kwargs["ssl_context"] = context
        return super().init_poolmanager(*args, **kwargs)


def build_retry(transport: TransportConfig) -> Retry:
    """Create the retry strategy for EPA calls.

    The final response is returned instead of raising once retries are
    exhausted, so the caller still sees the remote status code and body.

    Args:
        transport: Transport configuration

    Returns:
        Configured urllib3 Retry
    """
    return Retry(
        total=transport.max_retries,
        connect=transport.max_retries,
        read=0,
        backoff_factor=transport.backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=RETRY_METHODS,
        raise_on_status=False,
    )


def create_epa_session(
    epa: EPAConfig,
    transport: Optional[TransportConfig] = None,
    pool_connections: int = DEFAULT_POOL_CONNECTIONS,
) -> requests.Session:
    """Create an HTTP session preconfigured for the EPA endpoint.

    Args:
        epa: EPA connection settings (base URL and bearer token)
        transport: Transport settings. Uses defaults if not provided.
        pool_connections: Size of the connection pool

    Returns:
        requests.Session carrying the Authorization and FHIR content headers.
        Caller is responsible for closing.

    Example:
        >>> session = create_epa_session(config.epa, config.transport)
        >>> response = session.get(f"{config.epa.base_url}/health", timeout=(10, 30))
    """
    transport = transport or TransportConfig()

    adapter_kwargs = {
        "pool_connections": pool_connections,
        "pool_maxsize": pool_connections,
        "max_retries": build_retry(transport),
    }

    session = requests.Session()
    session.mount("https://", TLS12Adapter(**adapter_kwargs))
    session.mount("http://", HTTPAdapter(**adapter_kwargs))
    session.headers.update(
        {
            "Authorization": f"Bearer {epa.api_key}",
            "Content-Type": FHIR_JSON,
            "Accept": FHIR_JSON,
        }
    )
    session.verify = transport.verify_tls

    if epa.base_url.startswith("http://"):
        logger.warning(
            "SECURITY WARNING: Using HTTP transport (not HTTPS) for the EPA endpoint. "
            "This is only acceptable for local development against the mock server."
        )

    if not transport.verify_tls:
        logger.warning(
            "TLS certificate verification is DISABLED. "
            "This should only be used for development with self-signed certificates."
        )

    logger.info(
        "Created EPA session for %s with pool_connections=%d, max_retries=%d",
        epa.base_url,
        pool_connections,
        transport.max_retries,
    )
    return session
