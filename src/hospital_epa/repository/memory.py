"""In-memory patient repository.

Records are stored as copies, so callers never share mutable state with the
store: a change only becomes visible after an explicit update() or
update_fields().
"""

import dataclasses
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from hospital_epa.models.patient import PatientRecord
from hospital_epa.repository.base import PatientRepository
from hospital_epa.utils.exceptions import (
    DuplicateInsuranceNumberError,
    PatientNotFoundError,
)

logger = logging.getLogger(__name__)


def _by_name(record: PatientRecord) -> tuple:
    return ((record.last_name or "").lower(), (record.first_name or "").lower(), record.id or 0)


class InMemoryPatientRepository(PatientRepository):
    """Dict-backed PatientRepository guarded by a lock.

    Ids come from a monotonic counter and are never reused, even after a
    delete.

    Example:
        >>> repo = InMemoryPatientRepository()
        >>> stored = repo.insert(PatientRecord(first_name="Max", last_name="Mustermann", ...))
        >>> repo.find_by_id(stored.id).full_name
        'Max Mustermann'
    """

    def __init__(self, records: Optional[Iterable[PatientRecord]] = None):
        self._patients: Dict[int, PatientRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

        for record in records or []:
            self.insert(record)

    def find_by_id(self, patient_id: int) -> Optional[PatientRecord]:
        with self._lock:
            record = self._patients.get(patient_id)
            return dataclasses.replace(record) if record else None

    def find_all(self) -> List[PatientRecord]:
        return self._select(lambda record: True)

    def find_active(self) -> List[PatientRecord]:
        return self._select(lambda record: record.is_active)

    def search_by_name(self, query: str) -> List[PatientRecord]:
        needle = (query or "").strip().lower()
        return self._select(
            lambda record: needle in (record.first_name or "").lower()
            or needle in (record.last_name or "").lower()
        )

    def find_by_epa_id(self, epa_id: str) -> Optional[PatientRecord]:
        matches = self._select(lambda record: record.epa_id == epa_id)
        return matches[0] if matches else None

    def insert(self, record: PatientRecord) -> PatientRecord:
        with self._lock:
            self._check_unique_insurance(record.insurance_number, None)

            stored = dataclasses.replace(record, id=self._next_id)
            stored.mark_created()
            self._patients[stored.id] = stored
            self._next_id += 1

        logger.debug(f"Inserted patient {stored.id}")
        return dataclasses.replace(stored)

    def update(self, record: PatientRecord) -> PatientRecord:
        with self._lock:
            if record.id not in self._patients:
                raise PatientNotFoundError(record.id)
            self._check_unique_insurance(record.insurance_number, record.id)

            stored = dataclasses.replace(record)
            stored.touch()
            self._patients[stored.id] = stored

        logger.debug(f"Updated patient {stored.id}")
        return dataclasses.replace(stored)

    def update_fields(
        self, patient_id: int, source: PatientRecord, field_names: Iterable[str]
    ) -> PatientRecord:
        field_names = tuple(field_names)
        with self._lock:
            current = self._patients.get(patient_id)
            if current is None:
                raise PatientNotFoundError(patient_id)
            if "insurance_number" in field_names:
                self._check_unique_insurance(source.insurance_number, patient_id)

            stored = dataclasses.replace(current)
            stored.copy_fields(source, field_names)
            stored.touch()
            self._patients[patient_id] = stored

        logger.debug(f"Updated {', '.join(field_names)} of patient {patient_id}")
        return dataclasses.replace(stored)

    def delete(self, patient_id: int) -> bool:
        with self._lock:
            removed = self._patients.pop(patient_id, None)

        if removed is None:
            return False
        logger.debug(f"Deleted patient {patient_id}")
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._patients)

    def count_epa_enabled(self) -> int:
        return len(self._select(lambda record: record.epa_enabled))

    def count_by_sync_status(self, status: str) -> int:
        return len(self._select(lambda record: record.epa_sync_status == status))

    def _select(self, predicate: Callable[[PatientRecord], bool]) -> List[PatientRecord]:
        with self._lock:
            matches = [
                dataclasses.replace(record)
                for record in self._patients.values()
                if predicate(record)
            ]
        return sorted(matches, key=_by_name)

    def _check_unique_insurance(self, insurance_number: Optional[str], own_id: Optional[int]) -> None:
        # Caller holds the lock
        if not insurance_number:
            return
        for record in self._patients.values():
            if record.insurance_number == insurance_number and record.id != own_id:
                raise DuplicateInsuranceNumberError(insurance_number)
