"""Field validation for patient records.

This module checks a PatientRecord against the hospital's data rules before
it is stored or sent to the EPA, collecting all issues so a client can fix
several problems at once.
"""

import re
from datetime import date, datetime
from typing import Any, List, Optional

from hospital_epa.logging_audit import get_logger
from hospital_epa.models.patient import (
    GENDER_DIVERSE,
    GENDER_FEMALE,
    GENDER_MALE,
    PatientRecord,
    PatientStatus,
)
from hospital_epa.utils.exceptions import ValidationError

logger = get_logger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
ADDRESS_MAX_LENGTH = 500
MAX_AGE_YEARS = 150

VALID_GENDERS = (GENDER_MALE, GENDER_FEMALE, GENDER_DIVERSE)
VALID_STATUSES = tuple(status.value for status in PatientStatus)

PHONE_PATTERN = re.compile(r"^[+\d][\d\s/-]{7,}$")
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
BLOOD_TYPE_PATTERN = re.compile(r"^(A|B|AB|O)[+-]$")
INSURANCE_NUMBER_PATTERN = re.compile(r"^INS-\d{4}-\d+$")

# JSON field name -> attribute, for fields that only accept strings
STRING_FIELDS = (
    ("firstName", "first_name"),
    ("lastName", "last_name"),
    ("gender", "gender"),
    ("insuranceNumber", "insurance_number"),
    ("phone", "phone"),
    ("email", "email"),
    ("address", "address"),
    ("bloodType", "blood_type"),
    ("allergies", "allergies"),
    ("emergencyContactName", "emergency_contact_name"),
    ("emergencyContactPhone", "emergency_contact_phone"),
    ("status", "status"),
)


def validate_patient(record: PatientRecord, today: Optional[date] = None) -> List[str]:
    """Validate a patient record.

    Fields holding a value of the wrong type are reported as such and skip
    their content checks.

    Args:
        record: Record to check
        today: Reference date for date-of-birth checks (defaults to today)

    Returns:
        List of "field: problem" messages, empty when the record is valid
    """
    today = today or date.today()
    issues: List[str] = []

    mistyped = set()
    for field_name, attr in STRING_FIELDS:
        value = getattr(record, attr)
        if value is not None and not isinstance(value, str):
            issues.append(f"{field_name}: must be a string")
            mistyped.add(attr)

    for field_name, attr in (("firstName", "first_name"), ("lastName", "last_name")):
        if attr in mistyped:
            continue
        value = getattr(record, attr)
        if value is None or not value.strip():
            issues.append(f"{field_name}: is required")
        elif not NAME_MIN_LENGTH <= len(value.strip()) <= NAME_MAX_LENGTH:
            issues.append(
                f"{field_name}: must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
            )

    issues.extend(_validate_date_of_birth(record.date_of_birth, today))

    if "gender" not in mistyped and record.gender not in VALID_GENDERS:
        issues.append(f"gender: must be one of {', '.join(VALID_GENDERS)}")

    if "insurance_number" not in mistyped:
        if not record.insurance_number:
            issues.append("insuranceNumber: is required")
        elif not INSURANCE_NUMBER_PATTERN.match(record.insurance_number):
            issues.append("insuranceNumber: must match INS-YYYY-N (e.g. INS-2024-001)")

    if "phone" not in mistyped and record.phone and not PHONE_PATTERN.match(record.phone):
        issues.append("phone: invalid phone number")
    if (
        "emergency_contact_phone" not in mistyped
        and record.emergency_contact_phone
        and not PHONE_PATTERN.match(record.emergency_contact_phone)
    ):
        issues.append("emergencyContactPhone: invalid phone number")

    if "email" not in mistyped and record.email and not EMAIL_PATTERN.match(record.email):
        issues.append("email: invalid email address")

    if "address" not in mistyped and record.address and len(record.address) > ADDRESS_MAX_LENGTH:
        issues.append(f"address: must not exceed {ADDRESS_MAX_LENGTH} characters")

    if (
        "blood_type" not in mistyped
        and record.blood_type
        and not BLOOD_TYPE_PATTERN.match(record.blood_type)
    ):
        issues.append("bloodType: must be one of A+, A-, B+, B-, AB+, AB-, O+, O-")

    if "status" not in mistyped and record.status not in VALID_STATUSES:
        issues.append(f"status: must be one of {', '.join(VALID_STATUSES)}")

    return issues


def ensure_valid(record: PatientRecord, today: Optional[date] = None) -> None:
    """Validate a patient record and raise if any check fails.

    Raises:
        ValidationError: With all issues if the record is invalid
    """
    issues = validate_patient(record, today)
    if issues:
        logger.warning(f"Patient {record.id} failed validation with {len(issues)} issue(s)")
        raise ValidationError(
            "Patient validation failed:\n  - " + "\n  - ".join(issues),
            issues=issues,
        )


def _validate_date_of_birth(value: Any, today: date) -> List[str]:
    if value is None:
        return ["dateOfBirth: is required"]
    # datetime subclasses date, and pandas NaT subclasses datetime
    if isinstance(value, datetime) or not isinstance(value, date):
        return ["dateOfBirth: must be an ISO date (YYYY-MM-DD)"]
    if value > today:
        return ["dateOfBirth: must not be in the future"]

    try:
        earliest = today.replace(year=today.year - MAX_AGE_YEARS)
    except ValueError:
        # 29 February in a non-leap target year
        earliest = today.replace(year=today.year - MAX_AGE_YEARS, day=28)
    if value < earliest:
        return [f"dateOfBirth: must not be more than {MAX_AGE_YEARS} years ago"]
    return []
