"""EPA synchronization endpoints.

Each route is a thin pass-through to the SyncOrchestrator. Consent refusals
answer 403 and unknown patients 404 through the app's error handlers.
"""

import json
import logging

from flask import Blueprint, Response, jsonify, request

from hospital_epa.transport.http_client import FHIR_JSON

from .app import error_response, get_services

epa_bp = Blueprint("epa", __name__, url_prefix="/api/epa")

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")


def _fhir_response(payload: dict, status: int = 200) -> Response:
    return Response(json.dumps(payload, ensure_ascii=False), status=status, mimetype=FHIR_JSON)


@epa_bp.route("/sync/<int:patient_id>", methods=["POST"])
def sync_patient(patient_id: int):
    """Send one patient to the EPA. Answers 200 on success, 500 on failure."""
    result = get_services().orchestrator.sync_patient(patient_id)

    if result.success:
        return jsonify(result.to_dict()), 200
    return jsonify({"success": False, "error": result.message}), 500


@epa_bp.route("/sync-all", methods=["POST"])
def sync_all():
    """Send every active, consenting patient to the EPA."""
    result = get_services().orchestrator.sync_active_patients()

    body = result.to_dict()
    if result.total == 0:
        body["message"] = "No patients with EPA consent found"
    return jsonify(body), 200


@epa_bp.route("/consent/<int:patient_id>", methods=["PUT"])
def set_consent(patient_id: int):
    """Grant or withdraw EPA consent with ?enabled=true|false."""
    enabled = request.args.get("enabled", "false").lower() in TRUE_VALUES
    get_services().orchestrator.set_patient_consent(patient_id, enabled)

    message = "EPA consent granted" if enabled else "EPA consent withdrawn"
    return jsonify({"success": True, "message": message}), 200


@epa_bp.route("/status/<int:patient_id>", methods=["GET"])
def get_status(patient_id: int):
    return jsonify(get_services().orchestrator.get_status(patient_id)), 200


@epa_bp.route("/fetch/<epa_id>", methods=["GET"])
def fetch_from_epa(epa_id: str):
    """Return the FHIR Patient stored in the EPA, or 404 if absent."""
    payload = get_services().orchestrator.fetch_remote(epa_id)
    if payload is None:
        return error_response("Patient not found in EPA", 404)
    return _fhir_response(payload)


@epa_bp.route("/test-connection", methods=["GET"])
def test_connection():
    if get_services().orchestrator.test_connection():
        return jsonify({"connected": True, "message": "EPA connection successful"}), 200
    return jsonify({"connected": False, "message": "EPA not reachable"}), 503


@epa_bp.route("/statistics", methods=["GET"])
def statistics():
    return jsonify(get_services().orchestrator.get_statistics()), 200


@epa_bp.route("/export", methods=["GET"])
def export_bundle():
    """Export all patients as a FHIR collection Bundle."""
    return _fhir_response(get_services().orchestrator.export_bundle())


def register_epa_endpoint(app) -> None:
    """Register EPA endpoints with the Flask app (only once)."""
    if epa_bp.name not in app.blueprints:
        app.register_blueprint(epa_bp)
        logger.info("Registered EPA endpoints: /api/epa")
    else:
        logger.debug("EPA endpoints already registered")
