"""FHIR message Bundle assembly.

A conversion builds its Bundle incrementally through a ``BundleAssembler``
(append only) and freezes it with ``build()``. The MessageHeader, when
present, is always the first entry.
"""

import logging
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from frcore_bridge.healthcare.fhir.resources import (
    Appointment,
    Coverage,
    DiagnosticReport,
    Encounter,
    Location,
    MessageHeader,
    Meta,
    Observation,
    OperationOutcome,
    Organization,
    Patient,
    Practitioner,
    PractitionerRole,
    RelatedPerson,
    Resource,
    ServiceRequest,
    freeze,
)
from frcore_bridge.utils.date_formatting import DEFAULT_UTC_OFFSET, now_with_timezone
from frcore_bridge.utils.exceptions import ConversionFault
from frcore_bridge.utils.id_generator import generate_id, urn_for

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Bundle"

BUNDLE_PROFILE = "http://hl7.org/fhir/StructureDefinition/Bundle"

FHIRResource = Annotated[
    Union[
        MessageHeader,
        Patient,
        Encounter,
        Location,
        Practitioner,
        PractitionerRole,
        RelatedPerson,
        Coverage,
        Organization,
        Appointment,
        ServiceRequest,
        DiagnosticReport,
        Observation,
        OperationOutcome,
    ],
    Field(discriminator="resourceType"),
]


class BundleEntry(BaseModel):
    """A Bundle entry: fullUrl paired with exactly one resource."""

    model_config = ConfigDict(frozen=True)

    fullUrl: str
    resource: FHIRResource

    @model_validator(mode="after")
    def check_full_url(self) -> "BundleEntry":
        """fullUrl and resource id must come from the same value."""
        if self.fullUrl != urn_for(self.resource.id):
            raise ValueError(
                f"fullUrl {self.fullUrl} does not match resource id {self.resource.id}"
            )
        return self

    @classmethod
    def wrap(cls, resource: Resource) -> "BundleEntry":
        """Wrap a resource with its generated fullUrl."""
        return cls(fullUrl=urn_for(resource.id), resource=resource)

    def to_fhir(self) -> Dict[str, Any]:
        """Serialize to a FHIR JSON dictionary."""
        return {"fullUrl": self.fullUrl, "resource": self.resource.to_fhir()}


class Bundle(BaseModel):
    """FHIR Bundle of type message, immutable once built."""

    model_config = ConfigDict(frozen=True)

    resourceType: Literal["Bundle"] = "Bundle"
    id: str
    meta: Meta
    type: str = "message"
    timestamp: str
    entry: Tuple[BundleEntry, ...] = ()

    @model_validator(mode="after")
    def check_header_first(self) -> "Bundle":
        """A MessageHeader may only appear as the first entry."""
        for index, item in enumerate(self.entry):
            if isinstance(item.resource, MessageHeader) and index != 0:
                raise ValueError("MessageHeader must be the first Bundle entry")
        return self

    @property
    def resources(self) -> List[Resource]:
        """Entry resources in order."""
        return [item.resource for item in self.entry]

    def resource_types(self) -> List[str]:
        """Resource type of every entry, in order."""
        return [item.resource.resourceType for item in self.entry]

    def resources_of(self, resource_type: str) -> List[Resource]:
        """Entry resources of one type."""
        return [
            item.resource
            for item in self.entry
            if item.resource.resourceType == resource_type
        ]

    def first_of(self, resource_type: str) -> Optional[Resource]:
        """First entry resource of one type."""
        found = self.resources_of(resource_type)
        return found[0] if found else None

    @property
    def message_header(self) -> Optional[MessageHeader]:
        """The MessageHeader, if the first entry is one."""
        if self.entry and isinstance(self.entry[0].resource, MessageHeader):
            return self.entry[0].resource
        return None

    def stub_entries(self) -> List[BundleEntry]:
        """Entries holding placeholder resources."""
        return [item for item in self.entry if item.resource.is_stub]

    def has_errors(self) -> bool:
        """Whether the conversion reported a failure."""
        return any(
            isinstance(item.resource, OperationOutcome) for item in self.entry
        )

    def to_fhir(self) -> Dict[str, Any]:
        """Serialize to a FHIR JSON dictionary."""
        return {
            "resourceType": self.resourceType,
            "id": self.id,
            "meta": self.meta.model_dump(exclude_none=True),
            "type": self.type,
            "timestamp": self.timestamp,
            "entry": [item.to_fhir() for item in self.entry],
        }


class BundleAssembler:
    """Append-only builder of a message Bundle."""

    def __init__(self, utc_offset: str = DEFAULT_UTC_OFFSET):
        """Initialize the Bundle envelope.

        Args:
            utc_offset: Fixed offset used for ``lastUpdated`` and ``timestamp``
        """
        now = now_with_timezone(utc_offset)
        self.bundle_id = generate_id()
        self.last_updated = now
        self.timestamp = now
        self._entries: List[BundleEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, item: Union[Resource, BundleEntry]) -> BundleEntry:
        """Append a resource (or an already wrapped entry).

        Args:
            item: Resource or entry to append

        Returns:
            The appended entry

        Raises:
            ValueError: If a MessageHeader is appended after other entries
        """
        entry = item if isinstance(item, BundleEntry) else BundleEntry.wrap(item)
        if isinstance(entry.resource, MessageHeader) and self._entries:
            raise ValueError("MessageHeader must be appended before any other entry")
        self._entries.append(entry)
        return entry

    def extend(self, items: Iterable[Union[Resource, BundleEntry]]) -> None:
        """Append several resources in order."""
        for item in items:
            self.append(item)

    def build(self) -> Bundle:
        """Freeze the Bundle.

        Entries are deep-frozen copies, so neither the returned Bundle nor
        the resources it holds can be changed afterwards.
        """
        return Bundle(
            id=self.bundle_id,
            meta=freeze(
                Meta(lastUpdated=self.last_updated, profile=[BUNDLE_PROFILE])
            ),
            timestamp=self.timestamp,
            entry=tuple(
                item.model_copy(update={"resource": freeze(item.resource)})
                for item in self._entries
            ),
        )


def operation_outcome_for(fault: ConversionFault) -> OperationOutcome:
    """Render a conversion failure as an OperationOutcome resource."""
    return OperationOutcome(
        id=generate_id(),
        issue=[
            {
                "severity": "error",
                "code": "processing",
                "details": {"text": fault.message},
                "diagnostics": fault.reason,
            }
        ],
    )
