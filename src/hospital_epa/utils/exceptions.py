"""Custom exception classes for the Hospital EPA Bridge.

All exceptions inherit from HospitalEPAError to allow catching all custom exceptions.
"""

from typing import List, Optional

import requests


class HospitalEPAError(Exception):
    """Base exception for all Hospital EPA Bridge custom exceptions."""

    pass


class ValidationError(HospitalEPAError):
    """Raised when patient data validation fails.

    Examples:
        - Blank first or last name
        - Date of birth in the future
        - Insurance number not matching INS-YYYY-N

    Attributes:
        issues: Individual validation messages, one per offending field
    """

    def __init__(self, message: str, issues: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.issues = issues or []


class ConsentError(HospitalEPAError):
    """Raised when a sync is attempted for a patient without EPA consent.

    The remote system is never contacted when this error is raised.
    """

    def __init__(self, patient_id: Optional[int]) -> None:
        super().__init__(
            f"Patient {patient_id} has not given EPA consent; synchronization refused"
        )
        self.patient_id = patient_id


class ConfigurationError(HospitalEPAError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Invalid configuration file format
        - EPA base URL without http:// or https://
        - Configuration value out of range
    """

    pass


class FHIRMappingError(HospitalEPAError):
    """Raised when a record or document cannot be mapped.

    Indicates a data-model bug (missing required field on export, malformed
    document on import) and is never recovered silently.
    """

    pass


class PatientNotFoundError(HospitalEPAError):
    """Raised when a patient id is not present in the repository."""

    def __init__(self, patient_id: int) -> None:
        super().__init__(f"Patient {patient_id} not found")
        self.patient_id = patient_id


class DuplicateInsuranceNumberError(HospitalEPAError):
    """Raised when an insurance number is already assigned to another patient."""

    def __init__(self, insurance_number: str) -> None:
        super().__init__(f"Insurance number already in use: {insurance_number}")
        self.insurance_number = insurance_number


def describe_transport_error(exception: Exception) -> str:
    """Build a display message for a failed remote call.

    Args:
        exception: Exception raised by the HTTP layer

    Returns:
        Message naming the failure kind and the underlying error text

    Example:
        >>> describe_transport_error(requests.Timeout("read timed out"))
        'Technical error (timeout): read timed out'
    """
    if isinstance(exception, requests.exceptions.SSLError):
        kind = "TLS"
    elif isinstance(exception, requests.Timeout):
        kind = "timeout"
    elif isinstance(exception, requests.ConnectionError):
        kind = "connection"
    else:
        kind = type(exception).__name__

    detail = str(exception) or type(exception).__name__
    return f"Technical error ({kind}): {detail}"
