"""Repository module.

This module provides patient persistence behind the PatientRepository
interface, plus file loading for seeding.
"""

from hospital_epa.repository.base import PatientRepository
from hospital_epa.repository.loader import load_patients
from hospital_epa.repository.memory import InMemoryPatientRepository

__all__ = [
    "InMemoryPatientRepository",
    "PatientRepository",
    "load_patients",
]
