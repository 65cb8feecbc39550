"""RelatedPerson builder (NK1)."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from frcore_bridge.healthcare.builders.common import (
    BuildContext,
    parse_address,
    patient_reference_or_placeholder,
    telecom_entry,
)
from frcore_bridge.healthcare.fhir.resources import RelatedPerson
from frcore_bridge.healthcare.hl7.hl7_message import Field, Segment
from frcore_bridge.utils.id_generator import generate_id

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "RelatedPerson"

RELATIONSHIP_MAP = {
    "MERE": "mother",
    "M": "mother",
    "MTH": "mother",
    "PERE": "father",
    "P": "father",
    "FTH": "father",
}
OTHER_RELATIONSHIP = "other"


def map_relationship(field: Field) -> str:
    """Contact role from NK1-3.

    The French code is read from the fourth component when sent, the first
    otherwise.
    """
    parts = [part.strip().upper() for part in field.components()]
    if not parts:
        return OTHER_RELATIONSHIP
    candidate = parts[3] if len(parts) > 3 and parts[3] else parts[0]
    return RELATIONSHIP_MAP.get(candidate, OTHER_RELATIONSHIP)


def _name(field: Field) -> Optional[Dict[str, Any]]:
    parts = [part.strip() for part in field.first_components()]
    family = parts[0] if parts else ""
    if not family:
        return None
    name: Dict[str, Any] = {"use": "official", "family": family}
    given = [part for part in parts[1:2] if part]
    if given:
        name["given"] = given
    return name


def _telecom(field: Field) -> Optional[Dict[str, str]]:
    # Nested structures collapse to the first numeric looking value
    value = field.first_numeric() or field.text().strip()
    if not value:
        return None
    return telecom_entry(value, "home")


def build_related_person(
    nk1: Segment, ctx: BuildContext, patient_reference: Optional[str] = None
) -> Optional[RelatedPerson]:
    """Build an FR-Core RelatedPerson from one NK1.

    Args:
        nk1: NK1 segment
        ctx: Build context
        patient_reference: Reference to the Patient of the same Bundle

    Returns:
        RelatedPerson, None when NK1-2 carries no usable name
    """
    name = _name(nk1.field(2))
    if name is None:
        return None

    value_set = ctx.catalog.value_set("patientContactRole")
    code = map_relationship(nk1.field(3))
    coding = value_set.coding(code) if value_set else {"code": code}

    telecom = _telecom(nk1.field(5))
    address = parse_address(nk1.field(4))
    return RelatedPerson(
        id=generate_id(),
        meta=ctx.profile_meta("RelatedPerson"),
        patient=patient_reference_or_placeholder(patient_reference),
        relationship=[{"coding": [coding]}],
        name=[name],
        telecom=[telecom] if telecom else None,
        address=[address] if address else None,
    )


def build_related_persons(
    nk1_segments: Sequence[Segment],
    ctx: BuildContext,
    patient_reference: Optional[str] = None,
) -> List[RelatedPerson]:
    """One RelatedPerson per NK1 with a usable name."""
    related_persons: List[RelatedPerson] = []
    for nk1 in nk1_segments:
        related_person = build_related_person(nk1, ctx, patient_reference)
        if related_person is None:
            logger.debug("Skipping NK1 without a usable name")
            continue
        related_persons.append(related_person)
    return related_persons
