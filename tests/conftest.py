"""
Shared pytest configuration and fixtures.

This module provides fixtures and configuration used across all test suites
(unit and integration tests).
"""

import os
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hospital_epa.config.schema import Config, EPAConfig, TransportConfig
from hospital_epa.epa.client import EPAClient
from hospital_epa.fhir.mapper import FHIRMapper
from hospital_epa.models.patient import PatientRecord
from hospital_epa.models.responses import BulkSyncResult
from hospital_epa.repository import InMemoryPatientRepository


@pytest.fixture(autouse=True)
def clean_epa_environment(monkeypatch) -> None:
    """Remove EPA_* and MOCK_EPA_* variables so host settings never leak into tests."""
    for key in list(os.environ):
        if key.startswith(("EPA_", "MOCK_EPA_")):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def project_root() -> Path:
    """
    Return the project root directory.

    Returns:
        Path: Absolute path to the project root directory.
    """
    return Path(__file__).parent.parent


@pytest.fixture
def epa_config() -> EPAConfig:
    """EPA settings pointing at a local test endpoint."""
    return EPAConfig(base_url="http://localhost:8080/fhir", api_key="test-token")


@pytest.fixture
def transport_config() -> TransportConfig:
    return TransportConfig(timeout_connect=2, timeout_read=5, max_retries=0)


@pytest.fixture
def app_config(epa_config: EPAConfig, transport_config: TransportConfig) -> Config:
    return Config(epa=epa_config, transport=transport_config)


@pytest.fixture
def sample_patient() -> PatientRecord:
    """
    Fully populated patient record.

    Returns:
        PatientRecord: Max Mustermann with contact, clinical and emergency data.
    """
    return PatientRecord(
        first_name="Max",
        last_name="Mustermann",
        date_of_birth=date(1990, 5, 15),
        gender="Männlich",
        insurance_number="INS-2024-001",
        phone="+49 30 1234567",
        email="max.mustermann@example.com",
        address="Hauptstraße 1, 10115 Berlin",
        blood_type="A+",
        allergies="Penicillin",
        emergency_contact_name="Erika Mustermann",
        emergency_contact_phone="+49 30 7654321",
    )


@pytest.fixture
def minimal_patient() -> PatientRecord:
    """Patient record carrying only the required fields."""
    return PatientRecord(
        first_name="Erika",
        last_name="Musterfrau",
        date_of_birth=date(1985, 1, 20),
        gender="Weiblich",
        insurance_number="INS-2024-002",
    )


@pytest.fixture
def repository(sample_patient: PatientRecord, minimal_patient: PatientRecord) -> InMemoryPatientRepository:
    """Repository holding the two sample patients (ids 1 and 2)."""
    return InMemoryPatientRepository([sample_patient, minimal_patient])


@pytest.fixture
def epa_client_double() -> MagicMock:
    """EPAClient double; bulk_sync replays create() through the callback."""
    client = MagicMock(spec=EPAClient)
    client.mapper = FHIRMapper()

    def bulk_sync(records, on_result=None):
        success = failed = 0
        for record in records:
            result = client.create(record)
            if result.success:
                success += 1
            else:
                failed += 1
            if on_result:
                on_result(record, result)
        return BulkSyncResult(success_count=success, failed_count=failed)

    client.bulk_sync.side_effect = bulk_sync
    return client
