"""EPA module.

This module provides the EPA FHIR client and the synchronization
orchestrator.
"""

from hospital_epa.epa.client import EPAClient
from hospital_epa.epa.orchestrator import SyncOrchestrator

__all__ = [
    "EPAClient",
    "SyncOrchestrator",
]
