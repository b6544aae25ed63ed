"""Unit tests for the EPA synchronization orchestrator."""

from datetime import datetime

import pytest

from hospital_epa.epa.orchestrator import SyncOrchestrator
from hospital_epa.models.patient import EDITABLE_FIELDS, PatientRecord, SyncStatus
from hospital_epa.models.responses import BulkSyncResult, SyncResult
from hospital_epa.utils.exceptions import ConsentError, PatientNotFoundError

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def client(epa_client_double):
    return epa_client_double


@pytest.fixture
def orchestrator(client, repository):
    return SyncOrchestrator(client, repository, clock=lambda: FIXED_NOW)


class TestConsent:
    """Tests for consent transitions."""

    def test_withdraw_disables_without_remote_call(self, orchestrator, client, sample_patient):
        # Act
        orchestrator.set_consent(sample_patient, False)

        # Assert
        assert sample_patient.epa_enabled is False
        assert sample_patient.epa_sync_status == SyncStatus.DISABLED.value
        assert client.method_calls == []

    @pytest.mark.parametrize("previous", ["disabled", "synced", "error", "pending"])
    def test_grant_resets_to_pending(self, orchestrator, sample_patient, previous):
        # Arrange
        sample_patient.epa_enabled = previous != "disabled"
        sample_patient.epa_sync_status = previous

        # Act
        orchestrator.set_consent(sample_patient, True)

        # Assert
        assert sample_patient.epa_enabled is True
        assert sample_patient.epa_sync_status == SyncStatus.PENDING.value
        assert sample_patient.epa_consent_date == FIXED_NOW

    def test_set_patient_consent_persists(self, orchestrator, repository):
        # Act
        orchestrator.set_patient_consent(1, False)

        # Assert
        stored = repository.find_by_id(1)
        assert stored.epa_enabled is False
        assert stored.epa_sync_status == "disabled"

    def test_set_patient_consent_keeps_other_fields(self, orchestrator, repository):
        # Arrange
        synced = repository.find_by_id(1)
        synced.epa_id = "EPA-3"
        synced.phone = "+49 40 5550000"
        repository.update(synced)

        # Act
        orchestrator.set_patient_consent(1, True)

        # Assert
        stored = repository.find_by_id(1)
        assert stored.epa_id == "EPA-3"
        assert stored.phone == "+49 40 5550000"
        assert stored.epa_consent_date == FIXED_NOW

    def test_set_patient_consent_unknown_id(self, orchestrator):
        with pytest.raises(PatientNotFoundError):
            orchestrator.set_patient_consent(999, True)


class TestSyncOne:
    """Tests for single-patient synchronization."""

    def test_without_consent_is_refused_before_transport(self, orchestrator, client, sample_patient):
        # Arrange
        sample_patient.epa_enabled = False

        # Act & Assert
        with pytest.raises(ConsentError):
            orchestrator.sync_one(sample_patient)
        assert client.create.call_count == 0
        assert client.update.call_count == 0

    def test_success_marks_synced(self, orchestrator, client, sample_patient):
        # Arrange
        sample_patient.epa_sync_status = SyncStatus.ERROR.value
        sample_patient.epa_sync_error = "previous failure"
        client.create.return_value = SyncResult.ok("EPA-99", "Patient transferred to EPA successfully")

        # Act
        result = orchestrator.sync_one(sample_patient)

        # Assert
        assert result == client.create.return_value
        assert sample_patient.epa_id == "EPA-99"
        assert sample_patient.epa_sync_status == SyncStatus.SYNCED.value
        assert sample_patient.epa_sync_error is None
        assert sample_patient.epa_last_sync == FIXED_NOW

    def test_failure_marks_error_and_keeps_epa_id(self, orchestrator, client, sample_patient):
        # Arrange
        sample_patient.epa_id = "EPA-7"
        client.update.return_value = SyncResult.failed("EPA update failed (HTTP 500): Internal Server Error")

        # Act
        result = orchestrator.sync_one(sample_patient)

        # Assert
        assert result.success is False
        assert sample_patient.epa_sync_status == SyncStatus.ERROR.value
        assert sample_patient.epa_sync_error == "EPA update failed (HTTP 500): Internal Server Error"
        assert sample_patient.epa_id == "EPA-7"
        assert sample_patient.epa_last_sync is None

    def test_failure_on_first_sync_leaves_epa_id_empty(self, orchestrator, client, sample_patient):
        client.create.return_value = SyncResult.failed("Technical error (timeout): slow")

        orchestrator.sync_one(sample_patient)

        assert sample_patient.epa_id is None
        assert sample_patient.epa_sync_status == "error"

    def test_known_epa_id_uses_update(self, orchestrator, client, sample_patient):
        # Arrange
        sample_patient.epa_id = "EPA-7"
        client.update.return_value = SyncResult.ok("EPA-7", "Patient updated in EPA successfully")

        # Act
        orchestrator.sync_one(sample_patient)

        # Assert
        client.update.assert_called_once_with(sample_patient, "EPA-7")
        client.create.assert_not_called()

    def test_sync_patient_persists_outcome(self, orchestrator, client, repository):
        # Arrange
        client.create.return_value = SyncResult.ok("EPA-1", "ok")

        # Act
        result = orchestrator.sync_patient(2)

        # Assert
        assert result.success
        stored = repository.find_by_id(2)
        assert stored.epa_id == "EPA-1"
        assert stored.epa_sync_status == "synced"

    def test_sync_patient_keeps_edit_made_during_transfer(self, orchestrator, client, repository):
        # Arrange
        edit = repository.find_by_id(1)
        edit.phone = "+49 40 5550000"

        def create_while_edited(record):
            repository.update_fields(1, edit, EDITABLE_FIELDS)
            return SyncResult.ok("EPA-1", "ok")

        client.create.side_effect = create_while_edited

        # Act
        orchestrator.sync_patient(1)

        # Assert
        stored = repository.find_by_id(1)
        assert stored.phone == "+49 40 5550000"
        assert stored.epa_id == "EPA-1"
        assert stored.epa_sync_status == "synced"

    def test_edit_from_copy_loaded_before_sync_keeps_outcome(self, orchestrator, client, repository):
        # Arrange
        edit = repository.find_by_id(1)
        client.create.return_value = SyncResult.ok("EPA-1", "ok")
        orchestrator.sync_patient(1)
        edit.last_name = "Neumann"

        # Act
        repository.update_fields(1, edit, EDITABLE_FIELDS)

        # Assert
        stored = repository.find_by_id(1)
        assert stored.last_name == "Neumann"
        assert stored.epa_id == "EPA-1"
        assert stored.epa_last_sync == FIXED_NOW

    def test_sync_patient_unknown_id(self, orchestrator, client):
        with pytest.raises(PatientNotFoundError):
            orchestrator.sync_patient(999)
        client.create.assert_not_called()


class TestSyncAll:
    """Tests for bulk synchronization."""

    def test_filters_none_and_non_consenting(self, orchestrator, client, sample_patient, minimal_patient):
        # Arrange
        minimal_patient.epa_enabled = False
        minimal_patient.epa_sync_status = "disabled"
        client.create.return_value = SyncResult.ok("EPA-1", "ok")

        # Act
        result = orchestrator.sync_all([None, sample_patient, minimal_patient])

        # Assert
        assert result.total == 1
        assert result.success_count == 1
        assert minimal_patient.epa_sync_status == "disabled"
        assert minimal_patient.epa_id is None
        assert client.create.call_count == 1

    def test_empty_filtered_set_skips_remote(self, orchestrator, client, sample_patient):
        # Arrange
        sample_patient.epa_enabled = False

        # Act
        result = orchestrator.sync_all([sample_patient, None])

        # Assert
        assert result == BulkSyncResult(0, 0)
        client.bulk_sync.assert_not_called()

    def test_applies_transition_per_record(self, orchestrator, client, sample_patient, minimal_patient):
        # Arrange
        client.create.side_effect = [
            SyncResult.failed("EPA transfer failed (HTTP 500): boom"),
            SyncResult.ok("EPA-2", "ok"),
        ]

        # Act
        result = orchestrator.sync_all([sample_patient, minimal_patient])

        # Assert
        assert (result.success_count, result.failed_count) == (1, 1)
        assert sample_patient.epa_sync_status == "error"
        assert sample_patient.epa_sync_error == "EPA transfer failed (HTTP 500): boom"
        assert minimal_patient.epa_sync_status == "synced"
        assert minimal_patient.epa_id == "EPA-2"

    def test_records_with_epa_id_are_created_again(self, orchestrator, client, sample_patient):
        # Arrange
        sample_patient.epa_id = "EPA-OLD"
        client.create.return_value = SyncResult.ok("EPA-NEW", "ok")

        # Act
        result = orchestrator.sync_all([sample_patient])

        # Assert
        assert result.success_count == 1
        client.create.assert_called_once_with(sample_patient)
        client.update.assert_not_called()
        assert sample_patient.epa_id == "EPA-NEW"

    def test_sync_active_patients_skips_discharged(self, orchestrator, client, repository):
        # Arrange
        discharged = repository.find_by_id(2)
        discharged.status = "discharged"
        repository.update(discharged)
        client.create.return_value = SyncResult.ok("EPA-1", "ok")

        # Act
        result = orchestrator.sync_active_patients()

        # Assert
        assert result.total == 1
        assert repository.find_by_id(1).epa_sync_status == "synced"
        assert repository.find_by_id(2).epa_sync_status == "pending"


class TestQueries:
    """Tests for status, statistics, fetch and export helpers."""

    def test_get_status(self, orchestrator, repository):
        # Arrange
        record = repository.find_by_id(1)
        record.epa_id = "EPA-5"
        record.epa_sync_status = "synced"
        record.epa_last_sync = FIXED_NOW
        repository.update(record)

        # Act
        status = orchestrator.get_status(1)

        # Assert
        assert status == {
            "epaEnabled": True,
            "epaId": "EPA-5",
            "syncStatus": "synced",
            "lastSync": "2024-06-01T12:00:00",
            "syncError": None,
        }

    def test_get_statistics(self, orchestrator, client, repository):
        # Arrange
        # find_all orders by last name: Musterfrau (id 2) before Mustermann (id 1)
        client.create.side_effect = [SyncResult.ok("EPA-1", "ok"), SyncResult.failed("down")]
        orchestrator.sync_all(repository.find_all())
        orchestrator.set_patient_consent(2, False)

        # Act
        stats = orchestrator.get_statistics()

        # Assert
        assert stats == {"total": 2, "epaEnabled": 1, "synced": 0, "errors": 1}

    def test_fetch_remote_and_test_connection_delegate(self, orchestrator, client):
        # Arrange
        client.fetch.return_value = {"resourceType": "Patient", "id": "EPA-1"}
        client.health_check.return_value = False

        # Act & Assert
        assert orchestrator.fetch_remote("EPA-1")["id"] == "EPA-1"
        assert orchestrator.test_connection() is False

    def test_export_bundle(self, orchestrator):
        bundle = orchestrator.export_bundle()

        assert bundle["resourceType"] == "Bundle"
        assert bundle["total"] == 2

    def test_repository_helpers_require_repository(self, client):
        orchestrator = SyncOrchestrator(client)

        with pytest.raises(RuntimeError):
            orchestrator.get_statistics()
