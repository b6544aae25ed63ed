"""FHIR R4 Patient and Bundle models.

Lightweight pydantic models covering only the elements the mapper reads and
writes. Optional elements default to None and are dropped on serialization,
so a dumped document never carries an explicit null.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class FHIRElement(BaseModel):
    """Base for all FHIR elements.

    Unknown elements sent by a remote system are kept so that a fetched
    document survives a parse/dump cycle.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_fhir(self) -> Dict[str, Any]:
        """Dump as a FHIR JSON-compatible dictionary without null values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Coding(FHIRElement):
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None


class CodeableConcept(FHIRElement):
    coding: List[Coding] = Field(default_factory=list)
    text: Optional[str] = None


class Identifier(FHIRElement):
    use: Optional[str] = None
    system: Optional[str] = None
    value: Optional[str] = None


class HumanName(FHIRElement):
    use: Optional[str] = None
    text: Optional[str] = None
    family: Optional[str] = None
    given: Optional[List[str]] = None


class ContactPoint(FHIRElement):
    system: Optional[str] = None
    value: Optional[str] = None
    use: Optional[str] = None


class Address(FHIRElement):
    use: Optional[str] = None
    type: Optional[str] = None
    text: Optional[str] = None


class Extension(FHIRElement):
    url: str
    valueString: Optional[str] = None


class PatientContact(FHIRElement):
    relationship: List[CodeableConcept] = Field(default_factory=list)
    name: Optional[HumanName] = None
    telecom: Optional[List[ContactPoint]] = None


class FHIRPatient(FHIRElement):
    """FHIR R4 Patient resource.

    Field declaration order is the serialization order. The telecom and
    extension arrays are always emitted; address and contact only when set.
    """

    resourceType: Literal["Patient"] = "Patient"
    id: Optional[str] = None
    identifier: List[Identifier] = Field(default_factory=list)
    name: List[HumanName] = Field(default_factory=list)
    gender: Optional[str] = None
    birthDate: Optional[str] = None
    telecom: List[ContactPoint] = Field(default_factory=list)
    address: Optional[List[Address]] = None
    active: Optional[bool] = None
    extension: List[Extension] = Field(default_factory=list)
    contact: Optional[List[PatientContact]] = None


class BundleEntry(FHIRElement):
    resource: FHIRPatient


class FHIRBundle(FHIRElement):
    """FHIR R4 Bundle of type collection."""

    resourceType: Literal["Bundle"] = "Bundle"
    type: str = "collection"
    total: int = 0
    entry: List[BundleEntry] = Field(default_factory=list)
