"""Audit trail functionality for the Hospital EPA Bridge.

This module provides structured audit logging for tracking patient record
changes, consent decisions and EPA synchronization.
"""

import time
import uuid
from typing import Any, Dict, Optional

from .logger import get_logger

logger = get_logger(__name__)


def log_audit_event(event_type: str, details: Dict[str, Any]) -> None:
    """Log an audit trail event.

    Creates a structured audit log entry with standard fields. Audit events are
    logged at INFO level for successful operations and ERROR level for failures.

    Args:
        event_type: Type of operation (e.g., "EPA_SYNC", "EPA_BULK_SYNC",
                   "EPA_CONSENT_CHANGED", "PATIENT_CREATED", "PATIENT_DELETED")
        details: Dictionary with event details. Common fields include:
                - status: "success" or "failure"
                - patient_id: Internal patient id
                - epa_id: Remote EPA id
                - record_count: Number of records processed
                - duration: Operation duration in seconds
                - error_message: Error details (if status is failure)
                - correlation_id: Optional correlation ID for tracking related events

    Example:
        >>> log_audit_event("EPA_SYNC", {
        ...     "patient_id": 7,
        ...     "epa_id": "EPA-99",
        ...     "status": "success",
        ...     "duration": 0.4
        ... })
    """
    details = dict(details)

    if "timestamp" not in details:
        details["timestamp"] = time.time()

    if "correlation_id" not in details:
        details["correlation_id"] = str(uuid.uuid4())

    message_parts = [f"AUDIT [{event_type}]"]

    field_order = [
        "status",
        "patient_id",
        "epa_id",
        "record_count",
        "duration",
        "error_message",
        "correlation_id",
    ]

    for field in field_order:
        if field in details:
            value = details[field]
            if field == "duration" and isinstance(value, (int, float)):
                message_parts.append(f"{field}={value:.2f}s")
            else:
                message_parts.append(f"{field}={value}")

    for key, value in details.items():
        if key not in field_order and key != "timestamp":
            message_parts.append(f"{key}={value}")

    audit_message = " | ".join(message_parts)

    status = details.get("status", "unknown")
    if status == "failure":
        logger.error(audit_message)
    else:
        logger.info(audit_message)


def log_transaction(
    transaction_type: str,
    request: str,
    response: Optional[str],
    status: str = "success",
    status_code: Optional[int] = None,
) -> None:
    """Log a complete EPA exchange with request and response bodies.

    The header line goes to INFO; the full FHIR bodies go to DEBUG to avoid
    cluttering INFO logs with patient data.

    Args:
        transaction_type: Type of exchange (e.g., "EPA_CREATE", "EPA_UPDATE")
        request: Request body sent to the EPA (empty for GET)
        response: Response body, or None if no response was received
        status: Transaction status ("success" or "failure")
        status_code: HTTP status code, if a response was received

    Example:
        >>> log_transaction("EPA_CREATE", fhir_json, '{"id": "EPA-1"}', "success", 201)
    """
    correlation_id = str(uuid.uuid4())
    response = response or ""

    logger.info(
        f"TRANSACTION [{transaction_type}] | "
        f"status={status} | "
        f"http_status={status_code if status_code is not None else '-'} | "
        f"correlation_id={correlation_id} | "
        f"request_size={len(request)} bytes | "
        f"response_size={len(response)} bytes"
    )

    logger.debug(
        f"TRANSACTION REQUEST [{transaction_type}] | "
        f"correlation_id={correlation_id}\n"
        f"{request}"
    )

    logger.debug(
        f"TRANSACTION RESPONSE [{transaction_type}] | "
        f"correlation_id={correlation_id}\n"
        f"{response}"
    )
