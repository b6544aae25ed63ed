"""Patient CRUD endpoints."""

import logging
from typing import Any

from flask import Blueprint, jsonify, request

from hospital_epa.logging_audit import log_audit_event
from hospital_epa.models.patient import EDITABLE_FIELDS, PatientRecord, SyncStatus
from hospital_epa.utils.exceptions import PatientNotFoundError, ValidationError
from hospital_epa.validation import ensure_valid

from .app import get_services

patients_bp = Blueprint("patients", __name__, url_prefix="/api/patients")

logger = logging.getLogger(__name__)


def _read_record() -> PatientRecord:
    """Parse the request body into a record carrying only editable fields.

    Sync metadata sent by the client is ignored, except that a new patient
    may be created without EPA consent.

    Raises:
        ValidationError: If the body is not a JSON object or holds malformed dates
    """
    payload: Any = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        submitted = PatientRecord.from_dict(payload)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Malformed patient data: {e}", issues=[str(e)])

    record = PatientRecord()
    record.apply_changes(submitted)
    if payload.get("epaEnabled") is False:
        record.epa_enabled = False
        record.epa_sync_status = SyncStatus.DISABLED.value
    return record


@patients_bp.route("", methods=["GET"])
def list_patients():
    """List all patients, or only active ones with ?status=active."""
    repository = get_services().repository
    if request.args.get("status") == "active":
        patients = repository.find_active()
    else:
        patients = repository.find_all()
    return jsonify([patient.to_dict() for patient in patients]), 200


@patients_bp.route("/search", methods=["GET"])
def search_patients():
    query = request.args.get("q", "")
    patients = get_services().repository.search_by_name(query)
    return jsonify([patient.to_dict() for patient in patients]), 200


@patients_bp.route("/<int:patient_id>", methods=["GET"])
def get_patient(patient_id: int):
    patient = get_services().repository.find_by_id(patient_id)
    if patient is None:
        raise PatientNotFoundError(patient_id)
    return jsonify(patient.to_dict()), 200


@patients_bp.route("", methods=["POST"])
def create_patient():
    """Validate and store a new patient. Answers 201 with the stored record."""
    record = _read_record()
    ensure_valid(record)

    stored = get_services().repository.insert(record)
    log_audit_event("PATIENT_CREATED", {"status": "success", "patient_id": stored.id})
    return jsonify(stored.to_dict()), 201


@patients_bp.route("/<int:patient_id>", methods=["PUT"])
def update_patient(patient_id: int):
    """Replace the editable fields of a patient; sync metadata is kept."""
    repository = get_services().repository
    if repository.find_by_id(patient_id) is None:
        raise PatientNotFoundError(patient_id)

    changes = _read_record()
    ensure_valid(changes)

    stored = repository.update_fields(patient_id, changes, EDITABLE_FIELDS)
    log_audit_event("PATIENT_UPDATED", {"status": "success", "patient_id": patient_id})
    return jsonify(stored.to_dict()), 200


@patients_bp.route("/<int:patient_id>", methods=["DELETE"])
def delete_patient(patient_id: int):
    if not get_services().repository.delete(patient_id):
        raise PatientNotFoundError(patient_id)

    log_audit_event("PATIENT_DELETED", {"status": "success", "patient_id": patient_id})
    return "", 204


def register_patients_endpoint(app) -> None:
    """Register patient endpoints with the Flask app (only once)."""
    if patients_bp.name not in app.blueprints:
        app.register_blueprint(patients_bp)
        logger.info("Registered patient endpoints: /api/patients")
    else:
        logger.debug("Patient endpoints already registered")
