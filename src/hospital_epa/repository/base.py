"""Patient repository contract.

The synchronization layer and the API only talk to persistence through this
interface, so storage can be swapped without touching sync logic.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from hospital_epa.models.patient import PatientRecord


class PatientRepository(ABC):
    """Abstract interface for patient persistence."""

    @abstractmethod
    def find_by_id(self, patient_id: int) -> Optional[PatientRecord]:
        """Return the patient with the given id, or None if absent."""
        pass

    @abstractmethod
    def find_all(self) -> List[PatientRecord]:
        """Return all patients ordered by last name."""
        pass

    @abstractmethod
    def find_active(self) -> List[PatientRecord]:
        """Return patients with status active, ordered by last name."""
        pass

    @abstractmethod
    def search_by_name(self, query: str) -> List[PatientRecord]:
        """
        Case-insensitive substring search on first and last name.
        """
        pass

    @abstractmethod
    def find_by_epa_id(self, epa_id: str) -> Optional[PatientRecord]:
        """Return the patient carrying the given EPA id, or None."""
        pass

    @abstractmethod
    def insert(self, record: PatientRecord) -> PatientRecord:
        """
        Store a new patient and assign its id.

        Raises:
            DuplicateInsuranceNumberError: If the insurance number is taken
        """
        pass

    @abstractmethod
    def update(self, record: PatientRecord) -> PatientRecord:
        """
        Replace the stored state of an existing patient.

        Raises:
            PatientNotFoundError: If the record id is unknown
            DuplicateInsuranceNumberError: If the insurance number is taken
        """
        pass

    @abstractmethod
    def update_fields(
        self, patient_id: int, source: PatientRecord, field_names: Iterable[str]
    ) -> PatientRecord:
        """
        Copy only the named fields from source onto the stored patient.

        Fields not named keep their stored value, so writers that own
        different fields (edits, sync outcomes, consent) never overwrite
        each other. The read-modify-write happens atomically.

        Raises:
            PatientNotFoundError: If the id is unknown
            DuplicateInsuranceNumberError: If the insurance number is taken
        """
        pass

    @abstractmethod
    def delete(self, patient_id: int) -> bool:
        """Remove a patient. Returns False if it did not exist."""
        pass

    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def count_epa_enabled(self) -> int:
        pass

    @abstractmethod
    def count_by_sync_status(self, status: str) -> int:
        pass
