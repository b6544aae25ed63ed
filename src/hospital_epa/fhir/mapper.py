"""Bidirectional mapping between PatientRecord and FHIR R4 Patient.

The mapper is pure: it holds no state and never touches the sync metadata of
a record. Export (to_fhir) is total for valid records; import (from_fhir) is a
deliberately partial inverse meant for ingesting externally sourced patients.
"""

import json
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from hospital_epa.logging_audit import get_logger
from hospital_epa.models.fhir import (
    Address,
    BundleEntry,
    CodeableConcept,
    Coding,
    ContactPoint,
    Extension,
    FHIRBundle,
    FHIRPatient,
    HumanName,
    Identifier,
    PatientContact,
)
from hospital_epa.models.patient import (
    GENDER_DIVERSE,
    GENDER_FEMALE,
    GENDER_MALE,
    GENDER_UNKNOWN,
    PatientRecord,
    PatientStatus,
)
from hospital_epa.utils.exceptions import FHIRMappingError

logger = get_logger(__name__)

# German statutory health insurance identifier namespace
INSURANCE_IDENTIFIER_SYSTEM = "urn:oid:1.2.276.0.76.4.8"

EXTENSION_BASE_URL = "http://hospital.example.com/fhir/StructureDefinition"
BLOOD_TYPE_EXTENSION_URL = f"{EXTENSION_BASE_URL}/blood-type"
ALLERGIES_EXTENSION_URL = f"{EXTENSION_BASE_URL}/allergies"

CONTACT_RELATIONSHIP_SYSTEM = "http://terminology.hl7.org/CodeSystem/v2-0131"
EMERGENCY_CONTACT_CODE = "C"
EMERGENCY_CONTACT_DISPLAY = "Emergency Contact"

FHIR_UNKNOWN_GENDER = "unknown"

# Lower-cased local or FHIR term -> FHIR administrative gender
GENDER_TO_FHIR: Dict[str, str] = {
    "männlich": "male",
    "male": "male",
    "weiblich": "female",
    "female": "female",
    "divers": "other",
    "other": "other",
}

# FHIR administrative gender -> local term
GENDER_FROM_FHIR: Dict[str, str] = {
    "male": GENDER_MALE,
    "female": GENDER_FEMALE,
    "other": GENDER_DIVERSE,
}

FHIRInput = Union[FHIRPatient, Mapping[str, Any], str, bytes]


def gender_to_fhir(gender: Optional[str]) -> str:
    """Map a local gender term to FHIR administrative gender.

    Args:
        gender: Local term such as "Männlich" (any case) or None

    Returns:
        One of male, female, other, unknown

    Example:
        >>> gender_to_fhir("WEIBLICH")
        'female'
        >>> gender_to_fhir("n/a")
        'unknown'
    """
    if gender is None:
        return FHIR_UNKNOWN_GENDER
    return GENDER_TO_FHIR.get(gender.strip().lower(), FHIR_UNKNOWN_GENDER)


def gender_from_fhir(fhir_gender: Optional[str]) -> str:
    """Map FHIR administrative gender back to the local vocabulary."""
    if fhir_gender is None:
        return GENDER_UNKNOWN
    return GENDER_FROM_FHIR.get(fhir_gender, GENDER_UNKNOWN)


def _present(value: Optional[str]) -> bool:
    return value is not None and value != ""


class FHIRMapper:
    """Converts patient records to and from FHIR R4 Patient resources.

    Example:
        >>> mapper = FHIRMapper()
        >>> document = mapper.to_fhir_dict(record)
        >>> document["gender"]
        'male'
        >>> bundle = mapper.to_bundle([record_a, record_b])
        >>> bundle.total
        2
    """

    def to_fhir(self, record: PatientRecord) -> FHIRPatient:
        """Build the FHIR Patient resource for a record.

        Args:
            record: Patient record to export

        Returns:
            FHIRPatient resource

        Raises:
            FHIRMappingError: If a required field (names, date of birth,
                insurance number) is missing or the date of birth is not a date
        """
        self._check_exportable(record)

        patient = FHIRPatient(
            identifier=[
                Identifier(
                    use="official",
                    system=INSURANCE_IDENTIFIER_SYSTEM,
                    value=record.insurance_number,
                )
            ],
            name=[
                HumanName(
                    use="official",
                    family=record.last_name,
                    given=[record.first_name],
                )
            ],
            gender=gender_to_fhir(record.gender),
            birthDate=record.date_of_birth.isoformat(),
            telecom=self._build_telecom(record),
            address=self._build_address(record),
            active=record.status == PatientStatus.ACTIVE.value,
            extension=self._build_extensions(record),
            contact=self._build_contact(record),
        )
        return patient

    def to_fhir_dict(self, record: PatientRecord) -> Dict[str, Any]:
        """Build the FHIR Patient resource as a JSON-compatible dictionary."""
        return self.to_fhir(record).to_fhir()

    def to_fhir_json(self, record: PatientRecord) -> str:
        """Build the FHIR Patient resource as a JSON string."""
        return json.dumps(self.to_fhir_dict(record), ensure_ascii=False)

    def from_fhir(self, document: FHIRInput) -> PatientRecord:
        """Build a sparse patient record from a FHIR Patient resource.

        Only names, birth date, gender, insurance number and active status
        are read. Contact, address, clinical extensions and emergency contact
        are left unset on the returned record.

        Args:
            document: FHIRPatient, dict, or JSON string/bytes

        Returns:
            New PatientRecord without id or sync metadata

        Raises:
            FHIRMappingError: If the document is not a well-formed Patient
        """
        patient = self._parse_patient(document)
        record = PatientRecord()

        if patient.name:
            name = patient.name[0]
            record.last_name = name.family
            if name.given:
                record.first_name = name.given[0]

        if patient.birthDate is not None:
            try:
                record.date_of_birth = date.fromisoformat(patient.birthDate)
            except ValueError as e:
                raise FHIRMappingError(
                    f"Invalid birthDate in FHIR Patient: {patient.birthDate!r}"
                ) from e

        if patient.gender is not None:
            record.gender = gender_from_fhir(patient.gender)

        if patient.identifier:
            record.insurance_number = patient.identifier[0].value

        if patient.active is not None:
            record.status = (
                PatientStatus.ACTIVE.value
                if patient.active
                else PatientStatus.DISCHARGED.value
            )

        logger.debug("Imported FHIR Patient into sparse record")
        return record

    def to_bundle(self, records: Iterable[PatientRecord]) -> FHIRBundle:
        """Wrap records in a FHIR Bundle of type collection.

        Args:
            records: Records to export, order is preserved

        Returns:
            FHIRBundle with total equal to the number of records
        """
        entries = [BundleEntry(resource=self.to_fhir(record)) for record in records]
        return FHIRBundle(total=len(entries), entry=entries)

    def to_bundle_dict(self, records: Iterable[PatientRecord]) -> Dict[str, Any]:
        return self.to_bundle(records).to_fhir()

    def from_bundle(self, document: Union[FHIRBundle, Mapping[str, Any], str, bytes]) -> List[PatientRecord]:
        """Import every Patient entry of a FHIR Bundle.

        Args:
            document: FHIRBundle, dict, or JSON string/bytes

        Returns:
            Sparse records in entry order (see from_fhir)

        Raises:
            FHIRMappingError: If the bundle or one of its Patients is malformed
        """
        if isinstance(document, FHIRBundle):
            bundle = document
        else:
            try:
                if isinstance(document, (str, bytes)):
                    bundle = FHIRBundle.model_validate_json(document)
                else:
                    bundle = FHIRBundle.model_validate(dict(document))
            except (PydanticValidationError, TypeError, ValueError) as e:
                raise FHIRMappingError(f"Malformed FHIR Bundle document: {e}") from e

        return [self.from_fhir(entry.resource) for entry in bundle.entry]

    @staticmethod
    def _check_exportable(record: PatientRecord) -> None:
        if record is None:
            raise FHIRMappingError("Cannot convert None to a FHIR Patient")

        missing = [
            name
            for name in ("first_name", "last_name", "insurance_number")
            if not _present(getattr(record, name))
        ]
        if record.date_of_birth is None:
            missing.append("date_of_birth")
        if missing:
            raise FHIRMappingError(
                f"Patient {record.id} cannot be converted to FHIR, "
                f"missing required fields: {', '.join(missing)}"
            )

        birth_date = record.date_of_birth
        # datetime subclasses date, and pandas NaT subclasses datetime
        if isinstance(birth_date, datetime) or not isinstance(birth_date, date):
            raise FHIRMappingError(
                f"Patient {record.id} cannot be converted to FHIR, "
                f"invalid date_of_birth: {birth_date!r}"
            )

    @staticmethod
    def _build_telecom(record: PatientRecord) -> List[ContactPoint]:
        telecom: List[ContactPoint] = []
        if _present(record.phone):
            telecom.append(ContactPoint(system="phone", value=record.phone, use="home"))
        if _present(record.email):
            telecom.append(ContactPoint(system="email", value=record.email))
        return telecom

    @staticmethod
    def _build_address(record: PatientRecord) -> Optional[List[Address]]:
        if not _present(record.address):
            return None
        return [Address(use="home", type="physical", text=record.address)]

    @staticmethod
    def _build_extensions(record: PatientRecord) -> List[Extension]:
        extensions: List[Extension] = []
        if _present(record.blood_type):
            extensions.append(
                Extension(url=BLOOD_TYPE_EXTENSION_URL, valueString=record.blood_type)
            )
        if _present(record.allergies):
            extensions.append(
                Extension(url=ALLERGIES_EXTENSION_URL, valueString=record.allergies)
            )
        return extensions

    @staticmethod
    def _build_contact(record: PatientRecord) -> Optional[List[PatientContact]]:
        if not _present(record.emergency_contact_name):
            return None

        contact = PatientContact(
            relationship=[
                CodeableConcept(
                    coding=[
                        Coding(
                            system=CONTACT_RELATIONSHIP_SYSTEM,
                            code=EMERGENCY_CONTACT_CODE,
                            display=EMERGENCY_CONTACT_DISPLAY,
                        )
                    ]
                )
            ],
            name=HumanName(text=record.emergency_contact_name),
        )
        if _present(record.emergency_contact_phone):
            contact.telecom = [
                ContactPoint(system="phone", value=record.emergency_contact_phone)
            ]
        return [contact]

    @staticmethod
    def _parse_patient(document: FHIRInput) -> FHIRPatient:
        if isinstance(document, FHIRPatient):
            return document

        try:
            if isinstance(document, (str, bytes)):
                return FHIRPatient.model_validate_json(document)
            return FHIRPatient.model_validate(dict(document))
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise FHIRMappingError(f"Malformed FHIR Patient document: {e}") from e
