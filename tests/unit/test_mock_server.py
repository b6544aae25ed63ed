"""Unit tests for mock EPA server module."""

import json
from unittest.mock import patch

import pytest

from hospital_epa.mock_server import (
    MockEPAConfig,
    app,
    initialize_app,
    reset_store,
    stored_patients,
)

FHIR_JSON = "application/fhir+json"


def patient_body(family: str = "Mustermann") -> str:
    return json.dumps(
        {
            "resourceType": "Patient",
            "name": [{"use": "official", "family": family, "given": ["Max"]}],
            "birthDate": "1990-05-15",
        }
    )


@pytest.fixture
def make_client(tmp_path):
    """Build a test client for a given mock configuration."""

    def _make(**overrides):
        config = MockEPAConfig(log_path=str(tmp_path / "mock-epa.log"), **overrides)
        initialize_app(config)
        app.config["TESTING"] = True
        return app.test_client()

    reset_store()
    yield _make
    reset_store()


@pytest.fixture
def client(make_client):
    return make_client()


class TestHealth:
    def test_root_health(self, client):
        # Act
        response = client.get("/health")

        # Assert
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert "/fhir/Patient" in data["endpoints"]

    def test_fhir_health(self, client):
        response = client.get("/fhir/health")

        assert response.status_code == 200
        assert json.loads(response.data) == {"status": "UP"}


class TestPatientEndpoint:
    """Tests for the FHIR Patient create, update and read routes."""

    def test_create_assigns_id(self, client):
        # Act
        response = client.post("/fhir/Patient", data=patient_body(), content_type=FHIR_JSON)

        # Assert
        assert response.status_code == 201
        assert response.mimetype == FHIR_JSON
        body = json.loads(response.data)
        assert body["id"] == "EPA-1"
        assert body["meta"]["versionId"] == "1"
        assert response.headers["Location"].endswith("/fhir/Patient/EPA-1")
        assert "EPA-1" in stored_patients()

    def test_ids_increase(self, client):
        client.post("/fhir/Patient", data=patient_body(), content_type=FHIR_JSON)
        response = client.post("/fhir/Patient", data=patient_body("Musterfrau"), content_type=FHIR_JSON)

        assert json.loads(response.data)["id"] == "EPA-2"

    def test_create_rejects_non_patient(self, client):
        # Act
        response = client.post(
            "/fhir/Patient",
            data=json.dumps({"resourceType": "Observation"}),
            content_type=FHIR_JSON,
        )

        # Assert
        assert response.status_code == 400
        outcome = json.loads(response.data)
        assert outcome["resourceType"] == "OperationOutcome"
        assert outcome["issue"][0]["code"] == "invalid"

    def test_create_rejects_malformed_json(self, client):
        response = client.post("/fhir/Patient", data="{", content_type=FHIR_JSON)

        assert response.status_code == 400

    def test_update_bumps_version(self, client):
        # Arrange
        client.post("/fhir/Patient", data=patient_body(), content_type=FHIR_JSON)

        # Act
        response = client.put("/fhir/Patient/EPA-1", data=patient_body("Neumann"), content_type=FHIR_JSON)

        # Assert
        assert response.status_code == 200
        body = json.loads(response.data)
        assert body["meta"]["versionId"] == "2"
        assert stored_patients()["EPA-1"]["name"][0]["family"] == "Neumann"

    def test_update_unknown_is_404(self, client):
        response = client.put("/fhir/Patient/EPA-404", data=patient_body(), content_type=FHIR_JSON)

        assert response.status_code == 404

    def test_read(self, client):
        # Arrange
        client.post("/fhir/Patient", data=patient_body(), content_type=FHIR_JSON)

        # Act
        found = client.get("/fhir/Patient/EPA-1")
        missing = client.get("/fhir/Patient/EPA-2")

        # Assert
        assert found.status_code == 200
        assert json.loads(found.data)["name"][0]["family"] == "Mustermann"
        assert missing.status_code == 404

    def test_unknown_route_is_operation_outcome(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert json.loads(response.data)["issue"][0]["code"] == "not-found"


class TestBehaviourInjection:
    """Tests for bearer auth and simulated failures."""

    def test_missing_token_is_401(self, make_client):
        # Arrange
        client = make_client(api_key="secret")

        # Act
        response = client.post("/fhir/Patient", data=patient_body(), content_type=FHIR_JSON)

        # Assert
        assert response.status_code == 401
        assert stored_patients() == {}

    def test_valid_token_is_accepted(self, make_client):
        client = make_client(api_key="secret")

        response = client.post(
            "/fhir/Patient",
            data=patient_body(),
            content_type=FHIR_JSON,
            headers={"Authorization": "Bearer secret"},
        )

        assert response.status_code == 201

    def test_failure_rate_one_always_fails(self, make_client):
        # Arrange
        client = make_client(failure_rate=1.0)

        # Act
        response = client.post("/fhir/Patient", data=patient_body(), content_type=FHIR_JSON)

        # Assert
        assert response.status_code == 500
        assert json.loads(response.data)["issue"][0]["diagnostics"] == "Simulated EPA failure"

    def test_delay_is_applied(self, make_client):
        client = make_client(response_delay_ms=50)

        with patch("hospital_epa.mock_server.fhir_endpoint.time.sleep") as sleep:
            client.get("/fhir/Patient/EPA-1")

        sleep.assert_called_once_with(0.05)
