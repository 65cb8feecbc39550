"""FHIR Resource definitions for FR-Core conversion output.

This module defines the FHIR resource types produced by the HL7 converter.
Each model carries only the elements the converter populates, not the full
FHIR R4 schema. Resources built by a complete mapping are tagged
``Completeness.FULL``; placeholder resources awaiting a full mapping are
tagged ``Completeness.STUB``.
"""

from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator


class Completeness(str, Enum):
    """How trustworthy a converted resource is."""

    FULL = "full"
    STUB = "stub"


def freeze(value: Any) -> Any:
    """Read-only deep copy of a JSON-like value.

    Mappings become ``MappingProxyType`` views, lists become tuples and
    models are copied with every field frozen.
    """
    if isinstance(value, BaseModel):
        return value.model_copy(
            update={
                name: freeze(getattr(value, name)) for name in type(value).model_fields
            }
        )
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list deep copy of a possibly frozen value."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value


# Element types serialize through thaw so frozen copies dump as plain JSON
Element = Annotated[Dict[str, Any], PlainSerializer(thaw)]
Elements = Annotated[List[Dict[str, Any]], PlainSerializer(thaw)]
Strings = Annotated[List[str], PlainSerializer(thaw)]


class Meta(BaseModel):
    """FHIR Meta element."""

    model_config = ConfigDict(frozen=True)

    profile: Optional[Strings] = None
    lastUpdated: Optional[str] = None


class Resource(BaseModel):
    """Base FHIR Resource type."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    completeness: ClassVar[Completeness] = Completeness.FULL

    resourceType: str
    id: str
    meta: Optional[Meta] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that id is not empty."""
        if not v:
            raise ValueError("id must not be empty")
        return v

    @property
    def is_stub(self) -> bool:
        """Whether the resource is a placeholder."""
        return self.completeness is Completeness.STUB

    @property
    def profiles(self) -> List[str]:
        """Declared profile URLs."""
        if self.meta is None or not self.meta.profile:
            return []
        return list(self.meta.profile)

    def reference(self) -> str:
        """Relative reference to this resource, e.g. ``Patient/123``."""
        return f"{self.resourceType}/{self.id}"

    def to_fhir(self) -> Dict[str, Any]:
        """Serialize to a FHIR JSON dictionary."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DomainResource(Resource):
    """Base FHIR DomainResource type."""

    extension: Optional[Elements] = None


class MessageHeader(DomainResource):
    """FHIR MessageHeader Resource."""

    resourceType: Literal["MessageHeader"] = "MessageHeader"
    eventUri: Optional[str] = None
    eventCoding: Optional[Element] = None
    destination: Optional[Elements] = None
    sender: Optional[Element] = None
    source: Optional[Element] = None
    timestamp: Optional[str] = None


class Patient(DomainResource):
    """FHIR Patient Resource."""

    resourceType: Literal["Patient"] = "Patient"
    identifier: Optional[Elements] = None
    active: Optional[bool] = None
    name: Optional[Elements] = None
    telecom: Optional[Elements] = None
    gender: Optional[str] = None
    birthDate: Optional[str] = None
    address: Optional[Elements] = None
    generalPractitioner: Optional[Elements] = None


class Encounter(DomainResource):
    """FHIR Encounter Resource."""

    resourceType: Literal["Encounter"] = "Encounter"
    identifier: Optional[Elements] = None
    status: str = "finished"
    class_: Element = Field(alias="class")
    subject: Optional[Element] = None
    period: Optional[Element] = None
    hospitalization: Optional[Element] = None
    location: Optional[Elements] = None


class Location(DomainResource):
    """FHIR Location Resource."""

    resourceType: Literal["Location"] = "Location"
    identifier: Optional[Elements] = None
    status: Optional[str] = None
    name: Optional[str] = None


class Practitioner(DomainResource):
    """FHIR Practitioner Resource."""

    resourceType: Literal["Practitioner"] = "Practitioner"
    identifier: Optional[Elements] = None
    name: Optional[Elements] = None


class PractitionerRole(DomainResource):
    """FHIR PractitionerRole Resource."""

    completeness: ClassVar[Completeness] = Completeness.STUB

    resourceType: Literal["PractitionerRole"] = "PractitionerRole"
    practitioner: Optional[Element] = None
    code: Optional[Elements] = None


class RelatedPerson(DomainResource):
    """FHIR RelatedPerson Resource."""

    resourceType: Literal["RelatedPerson"] = "RelatedPerson"
    patient: Element
    relationship: Optional[Elements] = None
    name: Optional[Elements] = None
    telecom: Optional[Elements] = None
    address: Optional[Elements] = None


class Coverage(DomainResource):
    """FHIR Coverage Resource."""

    resourceType: Literal["Coverage"] = "Coverage"
    identifier: Optional[Elements] = None
    status: str = "active"
    type: Optional[Element] = None
    beneficiary: Element
    period: Optional[Element] = None
    payor: Elements


class Organization(DomainResource):
    """FHIR Organization Resource."""

    resourceType: Literal["Organization"] = "Organization"
    identifier: Optional[Elements] = None
    active: Optional[bool] = None
    name: Optional[str] = None


class Appointment(DomainResource):
    """FHIR Appointment Resource (placeholder mapping)."""

    completeness: ClassVar[Completeness] = Completeness.STUB

    resourceType: Literal["Appointment"] = "Appointment"
    status: str = "booked"


class ServiceRequest(DomainResource):
    """FHIR ServiceRequest Resource (placeholder mapping)."""

    completeness: ClassVar[Completeness] = Completeness.STUB

    resourceType: Literal["ServiceRequest"] = "ServiceRequest"
    status: str = "active"
    intent: str = "order"
    subject: Optional[Element] = None


class DiagnosticReport(DomainResource):
    """FHIR DiagnosticReport Resource (placeholder mapping)."""

    completeness: ClassVar[Completeness] = Completeness.STUB

    resourceType: Literal["DiagnosticReport"] = "DiagnosticReport"
    status: str = "final"
    subject: Optional[Element] = None


class Observation(DomainResource):
    """FHIR Observation Resource (placeholder mapping)."""

    completeness: ClassVar[Completeness] = Completeness.STUB

    resourceType: Literal["Observation"] = "Observation"
    status: str = "final"
    subject: Optional[Element] = None


class OperationOutcome(DomainResource):
    """FHIR OperationOutcome Resource."""

    resourceType: Literal["OperationOutcome"] = "OperationOutcome"
    issue: Elements


# Export all resources
__all__ = [
    "Completeness",
    "freeze",
    "thaw",
    "Meta",
    "Resource",
    "DomainResource",
    "MessageHeader",
    "Patient",
    "Encounter",
    "Location",
    "Practitioner",
    "PractitionerRole",
    "RelatedPerson",
    "Coverage",
    "Organization",
    "Appointment",
    "ServiceRequest",
    "DiagnosticReport",
    "Observation",
    "OperationOutcome",
]
