"""Flask application for the mock EPA server."""

import logging
import signal
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, jsonify, request

from .config import MockEPAConfig, load_config
from .fhir_endpoint import operation_outcome


# Server state tracking
_server_start_time: datetime | None = None
_request_count: int = 0
_config: MockEPAConfig | None = None

# Create Flask app
app = Flask(__name__)


def setup_logging(config: MockEPAConfig) -> logging.Logger:
    """Configure logging for mock server with rotation.

    Args:
        config: Mock server configuration

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("hospital_epa.mock_server")
    logger.setLevel(config.log_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Console handler (INFO and above)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (DEBUG and above) with rotation
    log_path = Path(config.log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


logger = logging.getLogger("hospital_epa.mock_server")


@app.before_request
def log_request():
    """Log all incoming requests."""
    global _request_count
    _request_count += 1

    logger.info(
        f"Request #{_request_count}: {request.method} {request.path} "
        f"(Content-Length: {request.content_length or 0})"
    )

    if request.data and logger.isEnabledFor(logging.DEBUG):
        body = request.get_data(as_text=True)
        logger.debug(f"Request body: {body[:500]}...")  # Truncate for readability


@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint.

    Returns JSON with server status, version, port, endpoints, uptime,
    request count, and timestamp.
    """
    uptime_seconds = 0
    if _server_start_time:
        uptime_seconds = int((datetime.now(timezone.utc) - _server_start_time).total_seconds())

    endpoints = ["/health"]
    if _config:
        endpoints.append(f"{_config.base_path}/health")
        endpoints.append(f"{_config.base_path}/Patient")

    health_response = {
        "status": "healthy",
        "version": "1.0.0",
        "port": _config.port if _config else 8080,
        "endpoints": endpoints,
        "uptime_seconds": uptime_seconds,
        "request_count": _request_count,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return jsonify(health_response), 200


@app.errorhandler(404)
def not_found(error):
    """Handle unknown routes with an OperationOutcome."""
    return operation_outcome(404, "not-found", f"No route for {request.path}")


@app.errorhandler(405)
def method_not_allowed(error):
    return operation_outcome(405, "not-supported", f"{request.method} not allowed on {request.path}")


@app.errorhandler(500)
def internal_error(error):
    """Handle 500 Internal Server errors with an OperationOutcome."""
    return operation_outcome(500, "exception", str(error))


def setup_graceful_shutdown():
    """Setup graceful shutdown handlers for SIGTERM and SIGINT.

    Note: Signal handlers can only be registered in the main thread.
    In test scenarios or when running in background threads, this will
    log a warning but continue gracefully.
    """
    def shutdown_handler(signum, frame):
        logger.info(f"Received shutdown signal ({signum}), cleaning up...")
        logger.info("Mock EPA server shutdown complete")
        sys.exit(0)

    try:
        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)
        logger.info("Graceful shutdown handlers registered successfully")
    except ValueError as e:
        # Signal registration only works in main thread
        logger.warning(
            f"Could not register signal handlers (not in main thread): {e}. "
            f"Graceful shutdown via signals will not be available."
        )


def initialize_app(config: MockEPAConfig) -> None:
    """Initialize Flask app with configuration.

    Args:
        config: Mock server configuration
    """
    global _config, _server_start_time
    _config = config
    _server_start_time = datetime.now(timezone.utc)

    setup_logging(config)
    logger.info("Mock EPA server application initialized")

    setup_graceful_shutdown()

    from .fhir_endpoint import register_fhir_endpoint
    register_fhir_endpoint(app, config)


def run_server(
    host: str | None = None,
    port: int | None = None,
    config: MockEPAConfig | None = None,
    debug: bool = False,
) -> None:
    """Run the Flask mock EPA server.

    Args:
        host: Host address (defaults to the configured host)
        port: Port number (defaults to the configured port)
        config: Mock server configuration (loads from file if not provided)
        debug: Enable debug mode (default: False)
    """
    if config is None:
        config = load_config()

    overrides = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if overrides:
        config = config.model_copy(update=overrides)

    initialize_app(config)

    logger.info(f"Starting mock EPA server on http://{config.host}:{config.port}")
    logger.info(f"FHIR base URL: http://{config.host}:{config.port}{config.base_path}")

    app.run(
        host=config.host,
        port=config.port,
        debug=debug,
        use_reloader=False,  # Disable reloader to avoid duplicate startup
    )


if __name__ == "__main__":
    run_server()
