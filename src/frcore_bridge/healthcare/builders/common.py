"""Helpers shared by the segment-to-resource builders."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from frcore_bridge.healthcare.fhir.resources import Meta
from frcore_bridge.healthcare.fhir_profiles import IdentifierSlice, ProfileRuleCatalog
from frcore_bridge.healthcare.hl7.hl7_message import Field
from frcore_bridge.utils.date_formatting import DEFAULT_UTC_OFFSET
from frcore_bridge.utils.exceptions import CatalogError
from frcore_bridge.utils.id_generator import generate_id

UNKNOWN_VALUE = "UNK"
DEFAULT_COUNTRY = "FRA"
DEFAULT_EVENT_URI_BASE = "https://hl7.fr/ig/fhir/core"


@dataclass(frozen=True)
class BuildContext:
    """Inputs shared by every builder of one conversion."""

    catalog: ProfileRuleCatalog
    utc_offset: str = DEFAULT_UTC_OFFSET
    event_uri_base: str = DEFAULT_EVENT_URI_BASE

    def profile_meta(self, *resource_types: str) -> Meta:
        """Meta declaring the FR-Core profiles of the given rule names."""
        profiles = [
            url
            for url in (self.catalog.profile_url(name) for name in resource_types)
            if url
        ]
        return Meta(profile=profiles)


def reference_to(resource_type: str, resource_id: str) -> Dict[str, str]:
    """FHIR Reference to a resource in the same Bundle."""
    return {"reference": f"{resource_type}/{resource_id}"}


def patient_reference_or_placeholder(patient_reference: Optional[str]) -> Dict[str, str]:
    """Reference to the converted Patient, or to a generated placeholder id."""
    if patient_reference:
        return {"reference": patient_reference}
    return reference_to("Patient", generate_id())


def slice_identifier(
    identifier_slice: IdentifierSlice, value: str, **extra: Any
) -> Dict[str, Any]:
    """Identifier conforming to a catalog slice."""
    identifier: Dict[str, Any] = {
        "use": identifier_slice.use,
        "type": {"coding": [identifier_slice.type_coding()]},
        "system": identifier_slice.system,
        "value": value,
    }
    identifier.update(extra)
    return identifier


def require_slice(
    catalog: ProfileRuleCatalog, resource_type: str, name: str
) -> IdentifierSlice:
    """Get a slice the builders cannot work without."""
    identifier_slice = catalog.slice(resource_type, name)
    if identifier_slice is None:
        raise CatalogError(f"No {name} slice defined for {resource_type}")
    return identifier_slice


def telecom_entry(value: str, use: Optional[str] = None) -> Dict[str, str]:
    """ContactPoint for a phone number or an e-mail address."""
    contact_point = {
        "system": "email" if "@" in value else "phone",
        "value": value,
    }
    if use:
        contact_point["use"] = use
    return contact_point


def parse_address(field: Field, use: Optional[str] = "home") -> Optional[Dict[str, Any]]:
    """Address from an HL7 XAD field (first repetition).

    Missing parts are filled with ``UNK``, the country defaults to ``FRA``.

    Args:
        field: XAD field (PID-11, NK1-4)
        use: Address use, omitted when None

    Returns:
        FHIR Address or None when the field is absent
    """
    repetitions = field.repetitions()
    if not repetitions:
        return None
    parts = repetitions[0].components()

    def part(index: int) -> str:
        return parts[index].strip() if index < len(parts) else ""

    address: Dict[str, Any] = {
        "line": [part(0) or UNKNOWN_VALUE],
        "city": part(2) or UNKNOWN_VALUE,
        "postalCode": part(4) or UNKNOWN_VALUE,
        "country": part(5) or DEFAULT_COUNTRY,
    }
    if use:
        address["use"] = use
    return address


def split_person_name(parts: List[str]) -> Dict[str, Any]:
    """HumanName from ``family^given^...`` components."""
    cleaned = [part.strip() for part in parts]
    name: Dict[str, Any] = {}
    family = cleaned[0] if cleaned else ""
    given = [part for part in cleaned[1:2] if part]
    if family:
        name["family"] = family
    if given:
        name["given"] = given
    text = " ".join(given + ([family] if family else []))
    if text:
        name["text"] = text
    return name
