"""Unit tests for the in-memory patient repository and file loader."""

import json
import threading
from datetime import date

import pytest

from hospital_epa.models.patient import EDITABLE_FIELDS, SYNC_FIELDS, PatientRecord
from hospital_epa.repository import InMemoryPatientRepository, load_patients
from hospital_epa.utils.exceptions import (
    DuplicateInsuranceNumberError,
    PatientNotFoundError,
    ValidationError,
)


def make_patient(first: str, last: str, insurance: str, **kwargs) -> PatientRecord:
    return PatientRecord(
        first_name=first,
        last_name=last,
        date_of_birth=date(1980, 1, 1),
        gender="Divers",
        insurance_number=insurance,
        **kwargs,
    )


class TestInsertAndFind:
    """Tests for id assignment and lookups."""

    def test_insert_assigns_sequential_ids(self):
        # Arrange
        repo = InMemoryPatientRepository()

        # Act
        first = repo.insert(make_patient("Anna", "Zimmer", "INS-2024-1"))
        second = repo.insert(make_patient("Bernd", "Alt", "INS-2024-2"))

        # Assert
        assert (first.id, second.id) == (1, 2)
        assert first.created_at is not None
        assert first.admission_date == first.created_at

    def test_ids_are_never_reused(self):
        # Arrange
        repo = InMemoryPatientRepository()
        first = repo.insert(make_patient("Anna", "Zimmer", "INS-2024-1"))
        repo.delete(first.id)

        # Act
        second = repo.insert(make_patient("Bernd", "Alt", "INS-2024-2"))

        # Assert
        assert second.id == 2

    def test_insert_does_not_mutate_argument(self):
        repo = InMemoryPatientRepository()
        record = make_patient("Anna", "Zimmer", "INS-2024-1")

        repo.insert(record)

        assert record.id is None

    def test_returned_records_are_copies(self, repository):
        # Arrange
        record = repository.find_by_id(1)

        # Act
        record.first_name = "Changed"

        # Assert
        assert repository.find_by_id(1).first_name == "Max"

    def test_find_all_orders_by_last_name(self):
        repo = InMemoryPatientRepository(
            [
                make_patient("Anna", "Zimmer", "INS-2024-1"),
                make_patient("Bernd", "Alt", "INS-2024-2"),
                make_patient("Clara", "meier", "INS-2024-3"),
            ]
        )

        assert [p.last_name for p in repo.find_all()] == ["Alt", "meier", "Zimmer"]

    def test_find_active(self):
        repo = InMemoryPatientRepository(
            [
                make_patient("Anna", "Zimmer", "INS-2024-1"),
                make_patient("Bernd", "Alt", "INS-2024-2", status="discharged"),
            ]
        )

        assert [p.first_name for p in repo.find_active()] == ["Anna"]

    @pytest.mark.parametrize("query, expected", [("must", 2), ("ERIKA", 1), ("max", 1), ("xyz", 0)])
    def test_search_by_name_is_case_insensitive(self, repository, query, expected):
        assert len(repository.search_by_name(query)) == expected

    def test_find_by_epa_id(self, repository):
        # Arrange
        record = repository.find_by_id(2)
        record.epa_id = "EPA-22"
        repository.update(record)

        # Act & Assert
        assert repository.find_by_epa_id("EPA-22").id == 2
        assert repository.find_by_epa_id("EPA-00") is None

    def test_find_by_id_missing(self, repository):
        assert repository.find_by_id(42) is None


class TestUpdateAndDelete:
    """Tests for update, delete and uniqueness rules."""

    def test_update_unknown_raises(self, repository):
        with pytest.raises(PatientNotFoundError):
            repository.update(make_patient("X", "Y", "INS-2024-9", id=99))

    def test_duplicate_insurance_on_insert(self, repository):
        with pytest.raises(DuplicateInsuranceNumberError):
            repository.insert(make_patient("Other", "Person", "INS-2024-001"))

    def test_duplicate_insurance_on_update(self, repository):
        # Arrange
        record = repository.find_by_id(2)
        record.insurance_number = "INS-2024-001"

        # Act & Assert
        with pytest.raises(DuplicateInsuranceNumberError):
            repository.update(record)

    def test_update_keeps_own_insurance_number(self, repository):
        record = repository.find_by_id(1)
        record.phone = "+49 40 000000"

        stored = repository.update(record)

        assert stored.phone == "+49 40 000000"

    def test_delete(self, repository):
        assert repository.delete(1) is True
        assert repository.delete(1) is False
        assert repository.count() == 1


class TestUpdateFields:
    """Tests for field-scoped writes."""

    def test_only_named_fields_are_written(self, repository):
        # Arrange
        source = make_patient("Maximilian", "Mustermann", "INS-2024-001", epa_id="EPA-STALE")

        # Act
        stored = repository.update_fields(1, source, ("first_name",))

        # Assert
        assert stored.first_name == "Maximilian"
        assert stored.epa_id is None
        assert stored.date_of_birth == date(1990, 5, 15)

    def test_edit_from_stale_copy_keeps_sync_state(self, repository):
        # Arrange
        edited = repository.find_by_id(1)
        edited.phone = "+49 40 000000"
        sync_state = repository.find_by_id(1)
        sync_state.epa_id = "EPA-7"
        sync_state.epa_sync_status = "synced"
        repository.update_fields(1, sync_state, SYNC_FIELDS)

        # Act
        repository.update_fields(1, edited, EDITABLE_FIELDS)

        # Assert
        stored = repository.find_by_id(1)
        assert stored.phone == "+49 40 000000"
        assert stored.epa_id == "EPA-7"
        assert stored.epa_sync_status == "synced"

    def test_sync_state_from_stale_copy_keeps_edit(self, repository):
        # Arrange
        sync_state = repository.find_by_id(1)
        edited = repository.find_by_id(1)
        edited.last_name = "Neumann"
        repository.update_fields(1, edited, EDITABLE_FIELDS)
        sync_state.epa_id = "EPA-7"
        sync_state.epa_sync_status = "synced"

        # Act
        repository.update_fields(1, sync_state, SYNC_FIELDS)

        # Assert
        stored = repository.find_by_id(1)
        assert stored.last_name == "Neumann"
        assert stored.epa_id == "EPA-7"

    def test_unknown_id_raises(self, repository):
        with pytest.raises(PatientNotFoundError):
            repository.update_fields(99, make_patient("X", "Y", "INS-2024-9"), EDITABLE_FIELDS)

    def test_duplicate_insurance_raises(self, repository):
        source = make_patient("Erika", "Musterfrau", "INS-2024-001")

        with pytest.raises(DuplicateInsuranceNumberError):
            repository.update_fields(2, source, EDITABLE_FIELDS)

    def test_insurance_not_checked_when_not_written(self, repository):
        # Arrange
        source = repository.find_by_id(2)
        source.insurance_number = "INS-2024-001"
        source.epa_sync_status = "error"

        # Act
        stored = repository.update_fields(2, source, SYNC_FIELDS)

        # Assert
        assert stored.insurance_number == "INS-2024-002"
        assert stored.epa_sync_status == "error"


class TestCounts:
    def test_counts(self, repository):
        # Arrange
        record = repository.find_by_id(1)
        record.epa_enabled = False
        record.epa_sync_status = "disabled"
        repository.update(record)

        # Act & Assert
        assert repository.count() == 2
        assert repository.count_epa_enabled() == 1
        assert repository.count_by_sync_status("pending") == 1
        assert repository.count_by_sync_status("synced") == 0


class TestConcurrentInsert:
    def test_parallel_inserts_get_unique_ids(self):
        # Arrange
        repo = InMemoryPatientRepository()

        def worker(offset: int) -> None:
            for i in range(25):
                repo.insert(make_patient("Anna", "Zimmer", f"INS-2024-{offset}{i:03d}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 5)]

        # Act
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Assert
        ids = [p.id for p in repo.find_all()]
        assert len(ids) == 100
        assert sorted(ids) == list(range(1, 101))


class TestLoadPatients:
    """Tests for CSV and JSON patient files."""

    def test_load_csv(self, tmp_path):
        # Arrange
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text(
            "first_name,last_name,date_of_birth,gender,insurance_number,phone,blood_type\n"
            "Max,Mustermann,1990-05-15,Männlich,INS-2024-001,+49 30 1234567,A+\n"
            "Erika,Musterfrau,1985-01-20,Weiblich,INS-2024-002,,\n",
            encoding="utf-8",
        )

        # Act
        records = load_patients(csv_file)

        # Assert
        assert len(records) == 2
        assert records[0].date_of_birth == date(1990, 5, 15)
        assert records[0].gender == "Männlich"
        assert records[0].blood_type == "A+"
        assert records[1].phone is None
        assert records[1].status == "active"

    def test_csv_missing_columns(self, tmp_path):
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text("first_name,last_name\nMax,Mustermann\n", encoding="utf-8")

        with pytest.raises(ValidationError, match="Missing required columns"):
            load_patients(csv_file)

    def test_csv_invalid_date_reports_row(self, tmp_path):
        # Arrange
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text(
            "first_name,last_name,date_of_birth,gender,insurance_number\n"
            "Max,Mustermann,15.05.1990,Männlich,INS-2024-001\n",
            encoding="utf-8",
        )

        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            load_patients(csv_file)
        assert "Row 2" in exc_info.value.issues[0]

    @pytest.mark.parametrize("dob", ["", "   "])
    def test_csv_blank_date_reports_row(self, tmp_path, dob):
        # Arrange
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text(
            "first_name,last_name,date_of_birth,gender,insurance_number\n"
            "Max,Mustermann,1990-05-15,Männlich,INS-2024-001\n"
            f"Erika,Musterfrau,{dob},Weiblich,INS-2024-002\n",
            encoding="utf-8",
        )

        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            load_patients(csv_file)
        assert exc_info.value.issues == [
            "Row 3: Missing date_of_birth. Expected format: YYYY-MM-DD"
        ]

    def test_csv_collects_errors_from_all_rows(self, tmp_path):
        # Arrange
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text(
            "first_name,last_name,date_of_birth,gender,insurance_number\n"
            "Max,Mustermann,,Männlich,INS-2024-001\n"
            "Erika,Musterfrau,1985-13-40,Weiblich,INS-2024-002\n",
            encoding="utf-8",
        )

        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            load_patients(csv_file)
        assert len(exc_info.value.issues) == 2
        assert exc_info.value.issues[1].startswith("Row 3: Invalid date format '1985-13-40'")

    def test_json_numeric_date_is_rejected(self, tmp_path, minimal_patient):
        # Arrange
        entry = minimal_patient.to_dict()
        entry["dateOfBirth"] = 19850120
        json_file = tmp_path / "patients.json"
        json_file.write_text(json.dumps([entry]), encoding="utf-8")

        # Act & Assert
        with pytest.raises(ValidationError, match="Entry 0.*dateOfBirth: must be an ISO date string"):
            load_patients(json_file)

    def test_load_json_array(self, tmp_path, sample_patient):
        json_file = tmp_path / "patients.json"
        json_file.write_text(json.dumps([sample_patient.to_dict()]), encoding="utf-8")

        records = load_patients(json_file)

        assert records[0].insurance_number == "INS-2024-001"

    def test_load_json_object_with_patients(self, tmp_path, minimal_patient):
        json_file = tmp_path / "patients.json"
        json_file.write_text(json.dumps({"patients": [minimal_patient.to_dict()]}), encoding="utf-8")

        assert len(load_patients(json_file)) == 1

    def test_load_json_malformed(self, tmp_path):
        json_file = tmp_path / "patients.json"
        json_file.write_text("[{", encoding="utf-8")

        with pytest.raises(ValidationError, match="Invalid JSON"):
            load_patients(json_file)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_patients(tmp_path / "absent.csv")
