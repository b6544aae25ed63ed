"""Models module.

This module provides data models and dataclasses for the application.
"""

from hospital_epa.models.fhir import FHIRBundle, FHIRPatient
from hospital_epa.models.patient import PatientRecord, PatientStatus, SyncStatus
from hospital_epa.models.responses import BulkSyncResult, SyncResult

__all__ = [
    "BulkSyncResult",
    "FHIRBundle",
    "FHIRPatient",
    "PatientRecord",
    "PatientStatus",
    "SyncResult",
    "SyncStatus",
]
