"""Transport module.

This module provides the HTTP session used for EPA FHIR calls.
"""

from hospital_epa.transport.http_client import FHIR_JSON, create_epa_session

__all__ = [
    "FHIR_JSON",
    "create_epa_session",
]
