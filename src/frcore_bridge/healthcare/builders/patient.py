"""Patient builder (PID + PD1).

Identifiers from PID-3 are sliced the FR-Core way: any identifier with an
assigning authority (four or more components) is the establishment's
internal PI, and a 15 digit value is also emitted as the national INS-NIR.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from frcore_bridge.healthcare.builders.common import (
    BuildContext,
    parse_address,
    require_slice,
    slice_identifier,
    telecom_entry,
)
from frcore_bridge.healthcare.builders.practitioner import practitioner_id
from frcore_bridge.healthcare.fhir.resources import Patient
from frcore_bridge.healthcare.hl7.hl7_message import Field, Segment
from frcore_bridge.utils.date_formatting import format_date
from frcore_bridge.utils.id_generator import generate_id

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Patient"

NIR_PATTERN = re.compile(r"^\d{15}$")
DEFAULT_ASSIGNER = "Établissement"
VALIDATED_IDENTITY = "VALI"
UNQUALIFIED_IDENTITY = "UNDI"

GENDER_MAP = {"M": "male", "F": "female"}


def map_gender(value: str) -> str:
    """Map HL7 administrative sex to FHIR gender (M, F, anything else)."""
    return GENDER_MAP.get(value.strip().upper(), "unknown")


def build_identifiers(field: Field, ctx: BuildContext) -> List[Dict[str, Any]]:
    """Slice PID-3 repetitions into PI and INS-NIR identifiers.

    Args:
        field: PID-3
        ctx: Build context

    Returns:
        PI identifiers followed by INS-NIR identifiers
    """
    pi_slice = require_slice(ctx.catalog, "Patient", "PI")
    ins_slice = require_slice(ctx.catalog, "Patient", "INS-NIR")

    internal: List[Dict[str, Any]] = []
    national: List[Dict[str, Any]] = []
    for repetition in field.repetitions():
        parts = repetition.components()
        value = parts[0].strip() if parts else ""
        if not value:
            continue
        if len(parts) >= 4:
            assigner = parts[3].strip() or DEFAULT_ASSIGNER
            internal.append(
                slice_identifier(pi_slice, value, assigner={"display": assigner})
            )
        if NIR_PATTERN.match(value):
            national.append(slice_identifier(ins_slice, value))
    return internal + national


def build_name(field: Field, ctx: BuildContext) -> List[Dict[str, Any]]:
    """Official name from PID-5 (first repetition)."""
    repetitions = field.repetitions()
    if not repetitions:
        return []
    parts = repetitions[0].components()
    family = parts[0].strip() if parts else ""

    given: List[str] = []
    for part in parts[1:]:
        part = part.strip()
        if part and part not in given:
            given.append(part)

    name: Dict[str, Any] = {"use": "official", "family": family}
    if given:
        name["given"] = given
        name["extension"] = [
            {
                "url": ctx.catalog.extension_url("birthListGivenName"),
                "valueString": " ".join(given),
            }
        ]
    return [name]


def build_telecom(pid: Segment) -> List[Dict[str, str]]:
    """Home (PID-13) and work (PID-14) contact points."""
    telecom = []
    for number, use in ((13, "home"), (14, "work")):
        value = pid.field(number).text().strip()
        if value:
            telecom.append(telecom_entry(value, use))
    return telecom


def build_birth_place(
    pid: Segment, address: Optional[Dict[str, Any]], ctx: BuildContext
) -> Optional[Dict[str, Any]]:
    """birthPlace extension from PID-23, else from the home address."""
    birth_place = pid.field(23).text().strip()
    if birth_place:
        value_address: Dict[str, Any] = {"city": birth_place}
    elif address:
        value_address = {
            key: address[key]
            for key in ("city", "postalCode", "country")
            if address.get(key)
        }
    else:
        return None
    return {"url": ctx.catalog.extension_url("birthPlace"), "valueAddress": value_address}


def build_identity_reliability(pid: Segment, ctx: BuildContext) -> Dict[str, Any]:
    """identity-reliability extension: VALI only when PID-35 says so."""
    code = (
        VALIDATED_IDENTITY
        if pid.field(35).text().strip() == VALIDATED_IDENTITY
        else UNQUALIFIED_IDENTITY
    )
    extension = ctx.catalog.extension("identityReliability")
    value_set = ctx.catalog.value_set(extension.value_set) if extension else None
    coding = value_set.coding(code) if value_set else {"code": code}
    return {
        "url": ctx.catalog.extension_url("identityReliability"),
        "valueCodeableConcept": {"coding": [coding]},
    }


def build_general_practitioner(pd1: Optional[Segment]) -> List[Dict[str, str]]:
    """Reference to the primary care provider of PD1-4."""
    if pd1 is None:
        return []
    references = []
    for repetition in pd1.field(4).repetitions():
        parts = repetition.components()
        identifier = parts[0].strip() if parts else ""
        if identifier:
            references.append(
                {"reference": f"Practitioner/{practitioner_id(identifier)}"}
            )
    return references


def build_patient(
    pid: Segment, pd1: Optional[Segment], ctx: BuildContext
) -> Patient:
    """Build an FR-Core Patient.

    Args:
        pid: PID segment
        pd1: Optional PD1 segment
        ctx: Build context

    Returns:
        Patient resource; declares the INS profile when an INS-NIR is present
    """
    identifiers = build_identifiers(pid.field(3), ctx)
    has_ins = any(
        coding.get("code") == "INS-NIR"
        for identifier in identifiers
        for coding in identifier["type"]["coding"]
    )
    profiles = ("Patient", "PatientINS") if has_ins else ("Patient",)

    address = parse_address(pid.field(11))
    extensions = [build_identity_reliability(pid, ctx)]
    birth_place = build_birth_place(pid, address, ctx)
    if birth_place:
        extensions.append(birth_place)

    patient = Patient(
        id=generate_id(),
        meta=ctx.profile_meta(*profiles),
        identifier=identifiers or None,
        name=build_name(pid.field(5), ctx) or None,
        telecom=build_telecom(pid) or None,
        gender=map_gender(pid.field(8).text()),
        birthDate=format_date(pid.field(7).text()),
        address=[address] if address else None,
        generalPractitioner=build_general_practitioner(pd1) or None,
        extension=extensions,
    )
    logger.debug(
        "Built Patient with %d identifier(s), INS=%s", len(identifiers), has_ins
    )
    return patient
