"""Validation module.

This module provides patient record validation.
"""

from hospital_epa.validation.patient_validator import ensure_valid, validate_patient

__all__ = [
    "ensure_valid",
    "validate_patient",
]
