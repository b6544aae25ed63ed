"""Mock EPA FHIR Patient endpoint for testing."""

import json
import logging
import random
import threading
import time
from datetime import datetime, timezone
from typing import Any

from flask import Blueprint, Response, request

from .config import MockEPAConfig

FHIR_JSON = "application/fhir+json"

# Create Blueprint
fhir_bp = Blueprint("fhir_patient", __name__)

fhir_logger = logging.getLogger("hospital_epa.mock_server.fhir")

# Store config reference
_config: MockEPAConfig | None = None

# Stored Patient resources keyed by EPA id
_patients: dict[str, dict[str, Any]] = {}
_next_id = 1
_store_lock = threading.Lock()


def reset_store() -> None:
    """Remove all stored Patient resources and restart id numbering."""
    global _next_id
    with _store_lock:
        _patients.clear()
        _next_id = 1


def stored_patients() -> dict[str, dict[str, Any]]:
    """Return a snapshot of the stored Patient resources."""
    with _store_lock:
        return dict(_patients)


def operation_outcome(status: int, code: str, diagnostics: str) -> tuple[Response, int]:
    """Build a FHIR OperationOutcome error response.

    Args:
        status: HTTP status code
        code: FHIR issue type (e.g., 'invalid', 'not-found', 'security')
        diagnostics: Human-readable description

    Returns:
        Tuple of (Response object, HTTP status code)
    """
    outcome = {
        "resourceType": "OperationOutcome",
        "issue": [{"severity": "error", "code": code, "diagnostics": diagnostics}],
    }
    fhir_logger.warning(f"OperationOutcome {status}: {code} - {diagnostics}")
    return _fhir_response(outcome), status


def _fhir_response(payload: dict[str, Any]) -> Response:
    return Response(json.dumps(payload, ensure_ascii=False), mimetype=FHIR_JSON)


def _check_request() -> tuple[Response, int] | None:
    """Apply auth, delay and failure injection. Returns an error response or None."""
    if _config is None:
        return None

    if _config.api_key:
        expected = f"Bearer {_config.api_key}"
        if request.headers.get("Authorization") != expected:
            return operation_outcome(401, "security", "Missing or invalid bearer token")

    if _config.response_delay_ms > 0:
        fhir_logger.debug(f"Simulating network delay: {_config.response_delay_ms}ms")
        time.sleep(_config.response_delay_ms / 1000.0)

    if _config.failure_rate > 0 and random.random() < _config.failure_rate:
        return operation_outcome(500, "exception", "Simulated EPA failure")

    return None


def _parse_patient() -> dict[str, Any]:
    """Parse the request body as a FHIR Patient.

    Raises:
        ValueError: If the body is not a JSON Patient resource
    """
    try:
        payload = json.loads(request.get_data(as_text=True) or "null")
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON: {e}")

    if not isinstance(payload, dict) or payload.get("resourceType") != "Patient":
        raise ValueError("Request body must be a FHIR Patient resource")
    return payload


def _stamp(resource: dict[str, Any], epa_id: str, version: int) -> dict[str, Any]:
    resource["id"] = epa_id
    resource["meta"] = {
        "versionId": str(version),
        "lastUpdated": datetime.now(timezone.utc).isoformat(),
    }
    return resource


@fhir_bp.route("/health", methods=["GET"])
def health() -> tuple[Response, int]:
    return _fhir_response({"status": "UP"}), 200


@fhir_bp.route("/Patient", methods=["POST"])
def create_patient() -> tuple[Response, int]:
    """Store a new Patient and answer 201 with the assigned id."""
    global _next_id

    error = _check_request()
    if error:
        return error

    try:
        resource = _parse_patient()
    except ValueError as e:
        return operation_outcome(400, "invalid", str(e))

    with _store_lock:
        epa_id = f"EPA-{_next_id}"
        _next_id += 1
        _patients[epa_id] = _stamp(resource, epa_id, 1)

    fhir_logger.info(f"Created Patient {epa_id}")
    response = _fhir_response(resource)
    response.headers["Location"] = f"{request.base_url}/{epa_id}"
    return response, 201


@fhir_bp.route("/Patient/<epa_id>", methods=["PUT"])
def update_patient(epa_id: str) -> tuple[Response, int]:
    """Replace a stored Patient. Unknown ids answer 404."""
    error = _check_request()
    if error:
        return error

    try:
        resource = _parse_patient()
    except ValueError as e:
        return operation_outcome(400, "invalid", str(e))

    with _store_lock:
        existing = _patients.get(epa_id)
        if existing is None:
            return operation_outcome(404, "not-found", f"Patient/{epa_id} not found")
        version = int(existing["meta"]["versionId"]) + 1
        _patients[epa_id] = _stamp(resource, epa_id, version)

    fhir_logger.info(f"Updated Patient {epa_id} (version {version})")
    return _fhir_response(resource), 200


@fhir_bp.route("/Patient/<epa_id>", methods=["GET"])
def read_patient(epa_id: str) -> tuple[Response, int]:
    error = _check_request()
    if error:
        return error

    with _store_lock:
        resource = _patients.get(epa_id)
    if resource is None:
        return operation_outcome(404, "not-found", f"Patient/{epa_id} not found")
    return _fhir_response(resource), 200


def register_fhir_endpoint(app, config: MockEPAConfig) -> None:
    """Register the FHIR Patient endpoint with the Flask app.

    Args:
        app: Flask application instance
        config: Mock server configuration
    """
    global _config
    _config = config

    # Register Blueprint (only if not already registered)
    if fhir_bp.name not in app.blueprints:
        app.register_blueprint(fhir_bp, url_prefix=config.base_path or None)
        fhir_logger.info(f"Registered FHIR Patient endpoint: {config.base_path}/Patient")
    else:
        fhir_logger.debug("FHIR Patient endpoint already registered")
