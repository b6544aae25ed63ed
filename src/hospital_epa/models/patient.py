"""Patient record data model.

This module defines the PatientRecord dataclass used throughout the application
for representing a hospital patient together with its EPA synchronization
metadata, plus the camelCase JSON form exchanged with the API.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Optional


class PatientStatus(str, Enum):
    """Administrative status of a patient."""

    ACTIVE = "active"
    DISCHARGED = "discharged"


class SyncStatus(str, Enum):
    """EPA synchronization status of a patient."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"
    DISABLED = "disabled"


# Local (German) gender vocabulary stored on the record
GENDER_MALE = "Männlich"
GENDER_FEMALE = "Weiblich"
GENDER_DIVERSE = "Divers"
GENDER_UNKNOWN = "Unbekannt"

# Fields a generic edit may change; sync metadata is deliberately absent
EDITABLE_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "phone",
    "email",
    "address",
    "insurance_number",
    "blood_type",
    "allergies",
    "emergency_contact_name",
    "emergency_contact_phone",
    "status",
    "discharge_date",
)

# EPA sync metadata written by the orchestrator after a sync attempt
SYNC_FIELDS = (
    "epa_id",
    "epa_sync_status",
    "epa_last_sync",
    "epa_sync_error",
)

# Consent metadata written when consent is granted or withdrawn
CONSENT_FIELDS = (
    "epa_enabled",
    "epa_sync_status",
    "epa_consent_date",
)

# snake_case attribute -> camelCase JSON key
_JSON_KEYS = {
    "id": "id",
    "first_name": "firstName",
    "last_name": "lastName",
    "date_of_birth": "dateOfBirth",
    "gender": "gender",
    "phone": "phone",
    "email": "email",
    "address": "address",
    "insurance_number": "insuranceNumber",
    "blood_type": "bloodType",
    "allergies": "allergies",
    "emergency_contact_name": "emergencyContactName",
    "emergency_contact_phone": "emergencyContactPhone",
    "admission_date": "admissionDate",
    "discharge_date": "dischargeDate",
    "status": "status",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "epa_id": "epaId",
    "epa_sync_status": "epaSyncStatus",
    "epa_last_sync": "epaLastSync",
    "epa_sync_error": "epaSyncError",
    "epa_enabled": "epaEnabled",
    "epa_consent_date": "epaConsentDate",
}

_DATETIME_FIELDS = (
    "admission_date",
    "discharge_date",
    "created_at",
    "updated_at",
    "epa_last_sync",
    "epa_consent_date",
)


@dataclass
class PatientRecord:
    """A hospital patient with demographics, clinical data and EPA sync state.

    Attributes:
        id: Repository-assigned identifier (None until inserted)
        first_name: Patient's first name (required)
        last_name: Patient's last name (required)
        date_of_birth: Date of birth (required)
        gender: Gender in the local vocabulary (Männlich, Weiblich, Divers)
        phone: Contact phone number (optional)
        email: Contact email (optional)
        address: Free-text address (optional)
        insurance_number: Insurance number, format INS-YYYY-N (required, unique)
        blood_type: ABO/Rh blood type such as "A+" (optional)
        allergies: Free-text allergy list (optional)
        emergency_contact_name: Emergency contact name (optional)
        emergency_contact_phone: Emergency contact phone (optional)
        admission_date: Admission timestamp, defaults to creation time
        discharge_date: Discharge timestamp (optional)
        status: active or discharged
        created_at: Creation timestamp
        updated_at: Timestamp of the last mutation
        epa_id: Identifier assigned by the EPA system (None until first sync)
        epa_sync_status: pending, synced, error or disabled
        epa_last_sync: Timestamp of the last successful sync
        epa_sync_error: Message of the last failed sync
        epa_enabled: Whether the patient consents to EPA synchronization
        epa_consent_date: When consent was last granted
    """

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    insurance_number: Optional[str] = None
    id: Optional[int] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    admission_date: Optional[datetime] = None
    discharge_date: Optional[datetime] = None
    status: str = PatientStatus.ACTIVE.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    epa_id: Optional[str] = None
    epa_sync_status: str = SyncStatus.PENDING.value
    epa_last_sync: Optional[datetime] = None
    epa_sync_error: Optional[str] = None
    epa_enabled: bool = True
    epa_consent_date: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Check if the patient is currently admitted."""
        return self.status == PatientStatus.ACTIVE.value

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def touch(self, now: Optional[datetime] = None) -> None:
        """Refresh the updated_at timestamp."""
        self.updated_at = now or datetime.now()

    def mark_created(self, now: Optional[datetime] = None) -> None:
        """Stamp creation timestamps, defaulting admission to creation time."""
        now = now or datetime.now()
        self.created_at = now
        self.updated_at = now
        if self.admission_date is None:
            self.admission_date = now

    def apply_changes(self, other: "PatientRecord") -> None:
        """Copy editable fields from another record.

        Sync metadata (epa_*) and identity are left untouched.

        Args:
            other: Record carrying the new field values
        """
        self.copy_fields(other, EDITABLE_FIELDS)
        self.touch()

    def copy_fields(self, other: "PatientRecord", names: Iterable[str]) -> None:
        """Copy the named attributes from another record, nothing else."""
        for name in names:
            setattr(self, name, getattr(other, name))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON form used by the API.

        Returns:
            Dictionary with ISO-8601 strings for dates and timestamps
        """
        result: dict[str, Any] = {}
        for attr, key in _JSON_KEYS.items():
            value = getattr(self, attr)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PatientRecord":
        """Build a record from the camelCase JSON form.

        Unknown keys are ignored. Sync metadata keys are accepted so that
        stored snapshots can be reloaded.

        Args:
            data: Dictionary using camelCase keys

        Returns:
            New PatientRecord

        Raises:
            ValueError: If a date or timestamp is not an ISO-8601 string
        """
        kwargs: dict[str, Any] = {}
        for attr, key in _JSON_KEYS.items():
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if attr == "date_of_birth":
                if not isinstance(value, str):
                    raise ValueError(f"{key}: must be an ISO date string")
                value = date.fromisoformat(value)
            elif attr in _DATETIME_FIELDS:
                if not isinstance(value, str):
                    raise ValueError(f"{key}: must be an ISO timestamp string")
                value = datetime.fromisoformat(value)
            kwargs[attr] = value
        return cls(**kwargs)
