"""FHIR module.

This module provides the FHIR R4 mapping between patient records and
Patient/Bundle resources.
"""

from hospital_epa.fhir.mapper import FHIRMapper, gender_from_fhir, gender_to_fhir

__all__ = [
    "FHIRMapper",
    "gender_from_fhir",
    "gender_to_fhir",
]
