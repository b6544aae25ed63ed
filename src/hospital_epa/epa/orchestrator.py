"""EPA synchronization orchestrator.

This module owns the per-patient synchronization state machine:

    disabled -> pending -> synced | error

Consent grant moves any state to pending, consent withdrawal moves any state
to disabled. Sync outcomes are applied to the record's EPA metadata and the
record is persisted through the attached repository. Only the sync or consent
fields are written back, so edits made while a sync is in flight survive.
"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from hospital_epa.epa.client import EPAClient
from hospital_epa.logging_audit import get_logger, log_audit_event
from hospital_epa.models.patient import CONSENT_FIELDS, SYNC_FIELDS, PatientRecord, SyncStatus
from hospital_epa.models.responses import BulkSyncResult, SyncResult
from hospital_epa.repository.base import PatientRepository
from hospital_epa.utils.exceptions import ConsentError, PatientNotFoundError

logger = get_logger(__name__)


class SyncOrchestrator:
    """Coordinates consent, EPA transmission and sync status bookkeeping.

    Attributes:
        client: EPA client used for all remote calls
        repository: Optional persistence for mutated records
        clock: Returns the current time; replaceable in tests

    Example:
        >>> orchestrator = SyncOrchestrator(client, repository)
        >>> result = orchestrator.sync_patient(7)
        >>> repository.find_by_id(7).epa_sync_status
        'synced'
    """

    def __init__(
        self,
        client: EPAClient,
        repository: Optional[PatientRepository] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.client = client
        self.repository = repository
        self.clock = clock

    def set_consent(self, record: PatientRecord, enabled: bool) -> None:
        """Record a consent decision on a patient.

        Withdrawal disables synchronization without contacting the EPA. A
        grant resets the status to pending and stamps the consent date.

        Args:
            record: Patient whose consent changed (mutated in place)
            enabled: True to grant consent, False to withdraw it
        """
        record.epa_enabled = enabled
        if enabled:
            record.epa_consent_date = self.clock()
            record.epa_sync_status = SyncStatus.PENDING.value
        else:
            record.epa_sync_status = SyncStatus.DISABLED.value

        log_audit_event(
            "EPA_CONSENT_CHANGED",
            {
                "status": "success",
                "patient_id": record.id,
                "consent": "granted" if enabled else "withdrawn",
            },
        )

    def apply_result(self, record: PatientRecord, result: SyncResult) -> None:
        """Apply a sync outcome to the record's EPA metadata.

        Success stores the EPA id and sync time and clears the last error.
        Failure stores the message verbatim and keeps the existing EPA id.
        """
        if result.success:
            record.epa_id = result.epa_id
            record.epa_sync_status = SyncStatus.SYNCED.value
            record.epa_last_sync = self.clock()
            record.epa_sync_error = None
        else:
            record.epa_sync_status = SyncStatus.ERROR.value
            record.epa_sync_error = result.message

    def sync_one(self, record: PatientRecord) -> SyncResult:
        """Synchronize a single patient with the EPA.

        A patient that already carries an EPA id is updated in place;
        otherwise it is created.

        Args:
            record: Consenting patient (mutated in place)

        Returns:
            The client's SyncResult, unchanged

        Raises:
            ConsentError: If the patient has not consented; the EPA is not contacted
            FHIRMappingError: If the record lacks fields required for FHIR
        """
        if not record.epa_enabled:
            logger.warning(f"Refusing EPA sync of patient {record.id}: no consent")
            raise ConsentError(record.id)

        start_time = time.time()
        if record.epa_id:
            result = self.client.update(record, record.epa_id)
        else:
            result = self.client.create(record)

        self._record_outcome(record, result)

        log_audit_event(
            "EPA_SYNC",
            {
                "status": "success" if result.success else "failure",
                "patient_id": record.id,
                "epa_id": result.epa_id,
                "duration": time.time() - start_time,
                **({} if result.success else {"error_message": result.message}),
            },
        )
        return result

    def sync_all(self, records: Iterable[Optional[PatientRecord]]) -> BulkSyncResult:
        """Synchronize every consenting patient with the EPA.

        Missing entries and patients without consent are skipped and not
        counted. When nothing is left the EPA is not contacted.

        Every eligible patient is sent with a create call, including patients
        that already carry an EPA id; on success the id returned by the EPA
        replaces the stored one. Use sync_one or sync_patient to update an
        existing EPA entry in place.

        Args:
            records: Candidate patients (consenting ones are mutated in place)

        Returns:
            BulkSyncResult over the consenting patients
        """
        eligible = [record for record in records if record is not None and record.epa_enabled]
        if not eligible:
            logger.info("No patients with EPA consent to synchronize")
            return BulkSyncResult()

        logger.info(f"Starting EPA bulk sync of {len(eligible)} patient(s)")
        result = self.client.bulk_sync(eligible, on_result=self._record_outcome)
        logger.info(
            f"EPA bulk sync finished: {result.success_count} synced, "
            f"{result.failed_count} failed"
        )
        return result

    def sync_patient(self, patient_id: int) -> SyncResult:
        """Load a stored patient and synchronize it.

        Raises:
            PatientNotFoundError: If the id is unknown
            ConsentError: If the patient has not consented
        """
        return self.sync_one(self._load(patient_id))

    def sync_active_patients(self) -> BulkSyncResult:
        """Synchronize all active, consenting patients in the repository."""
        return self.sync_all(self._require_repository().find_active())

    def set_patient_consent(self, patient_id: int, enabled: bool) -> PatientRecord:
        """Change consent for a stored patient and persist it.

        Only the consent fields are written, so a concurrent edit is kept.

        Raises:
            PatientNotFoundError: If the id is unknown
        """
        record = self._load(patient_id)
        self.set_consent(record, enabled)
        return self._require_repository().update_fields(patient_id, record, CONSENT_FIELDS)

    def get_status(self, patient_id: int) -> Dict[str, Any]:
        """Return the EPA sync metadata of a stored patient.

        Raises:
            PatientNotFoundError: If the id is unknown
        """
        record = self._load(patient_id)
        return {
            "epaEnabled": record.epa_enabled,
            "epaId": record.epa_id,
            "syncStatus": record.epa_sync_status,
            "lastSync": record.epa_last_sync.isoformat() if record.epa_last_sync else None,
            "syncError": record.epa_sync_error,
        }

    def fetch_remote(self, epa_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a FHIR Patient from the EPA, or None if absent."""
        return self.client.fetch(epa_id)

    def test_connection(self) -> bool:
        return self.client.health_check()

    def get_statistics(self) -> Dict[str, int]:
        """Count patients by EPA consent and sync status."""
        repository = self._require_repository()
        return {
            "total": repository.count(),
            "epaEnabled": repository.count_epa_enabled(),
            "synced": repository.count_by_sync_status(SyncStatus.SYNCED.value),
            "errors": repository.count_by_sync_status(SyncStatus.ERROR.value),
        }

    def export_bundle(self) -> Dict[str, Any]:
        """Export all stored patients as a FHIR collection Bundle."""
        return self.client.mapper.to_bundle_dict(self._require_repository().find_all())

    def _record_outcome(self, record: PatientRecord, result: SyncResult) -> None:
        self.apply_result(record, result)
        self._persist(record)

    def _persist(self, record: PatientRecord) -> None:
        if self.repository is None or record.id is None:
            return
        try:
            self.repository.update_fields(record.id, record, SYNC_FIELDS)
        except PatientNotFoundError:
            # Deleted while the sync was in flight
            logger.warning(f"Patient {record.id} no longer stored; sync outcome not persisted")

    def _load(self, patient_id: int) -> PatientRecord:
        record = self._require_repository().find_by_id(patient_id)
        if record is None:
            raise PatientNotFoundError(patient_id)
        return record

    def _require_repository(self) -> PatientRepository:
        if self.repository is None:
            raise RuntimeError("SyncOrchestrator has no repository attached")
        return self.repository
