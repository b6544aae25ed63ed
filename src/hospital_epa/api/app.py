"""Flask application exposing the patient and EPA JSON API."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from hospital_epa import __version__
from hospital_epa.config.schema import Config
from hospital_epa.epa.client import EPAClient
from hospital_epa.epa.orchestrator import SyncOrchestrator
from hospital_epa.repository.base import PatientRepository
from hospital_epa.repository.memory import InMemoryPatientRepository
from hospital_epa.utils.exceptions import (
    ConsentError,
    DuplicateInsuranceNumberError,
    FHIRMappingError,
    PatientNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Collaborators shared by all request handlers.

    Attributes:
        repository: Patient persistence
        orchestrator: EPA synchronization
    """

    repository: PatientRepository
    orchestrator: SyncOrchestrator


# Server state tracking
_services: Services | None = None
_server_start_time: datetime | None = None

# Create Flask app
app = Flask(__name__)
app.json.ensure_ascii = False
app.json.sort_keys = False


def build_services(config: Config, repository: PatientRepository | None = None) -> Services:
    """Wire repository, EPA client and orchestrator from configuration.

    Args:
        config: Application configuration
        repository: Patient persistence (a fresh in-memory store if not provided)

    Returns:
        Services ready for initialize_app()
    """
    repository = repository or InMemoryPatientRepository()
    client = EPAClient(config.epa, config.transport)
    return Services(repository=repository, orchestrator=SyncOrchestrator(client, repository))


def get_services() -> Services:
    """Return the services bound by initialize_app().

    Raises:
        RuntimeError: If the app has not been initialized
    """
    if _services is None:
        raise RuntimeError("API not initialized; call initialize_app() first")
    return _services


def error_response(message: str, status: int, **extra):
    """Build a JSON error response of the form {"error": message, ...}."""
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status


@app.before_request
def log_request():
    logger.debug(f"{request.method} {request.path}")


@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint.

    Returns JSON with service status, version, uptime and timestamp.
    """
    uptime_seconds = 0
    if _server_start_time:
        uptime_seconds = int((datetime.now(timezone.utc) - _server_start_time).total_seconds())

    return jsonify(
        {
            "status": "healthy",
            "version": __version__,
            "uptime_seconds": uptime_seconds,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    ), 200


@app.errorhandler(ValidationError)
def handle_validation_error(error: ValidationError):
    return error_response(str(error), 400, issues=error.issues)


@app.errorhandler(FHIRMappingError)
def handle_mapping_error(error: FHIRMappingError):
    return error_response(str(error), 400)


@app.errorhandler(DuplicateInsuranceNumberError)
def handle_duplicate(error: DuplicateInsuranceNumberError):
    return error_response(str(error), 409)


@app.errorhandler(ConsentError)
def handle_consent_error(error: ConsentError):
    return error_response("Patient has not given EPA consent", 403)


@app.errorhandler(PatientNotFoundError)
def handle_not_found(error: PatientNotFoundError):
    return error_response("Patient not found", 404)


@app.errorhandler(404)
def not_found(error):
    return error_response(f"No route for {request.path}", 404)


@app.errorhandler(405)
def method_not_allowed(error):
    return error_response(f"{request.method} not allowed on {request.path}", 405)


@app.errorhandler(500)
def internal_error(error):
    logger.error(f"Unhandled error on {request.method} {request.path}: {error}")
    return error_response("Internal server error", 500)


def initialize_app(services: Services) -> None:
    """Initialize Flask app with its services.

    Args:
        services: Collaborators used by the request handlers
    """
    global _services, _server_start_time
    _services = services
    _server_start_time = datetime.now(timezone.utc)

    from .epa_endpoint import register_epa_endpoint
    from .patients_endpoint import register_patients_endpoint

    register_patients_endpoint(app)
    register_epa_endpoint(app)
    logger.info("API application initialized")


def run_server(config: Config, services: Services | None = None, debug: bool = False) -> None:
    """Run the Flask API server.

    Args:
        config: Application configuration (server host and port)
        services: Prebuilt services (built from config if not provided)
        debug: Enable debug mode (default: False)
    """
    initialize_app(services or build_services(config))

    logger.info(f"Starting API server on http://{config.server.host}:{config.server.port}")
    app.run(
        host=config.server.host,
        port=config.server.port,
        debug=debug,
        use_reloader=False,  # Disable reloader to avoid duplicate startup
    )
