"""Practitioner builders (PV1-7/8/9/17, ROL, AIP, OBR-16)."""

import logging
from typing import Dict, List, Sequence

from frcore_bridge.healthcare.builders.common import (
    BuildContext,
    require_slice,
    slice_identifier,
    split_person_name,
)
from frcore_bridge.healthcare.fhir.resources import Practitioner, PractitionerRole
from frcore_bridge.healthcare.hl7.hl7_message import Field, Segment
from frcore_bridge.utils.id_generator import generate_id, stable_id

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Practitioner"

# PV1 fields holding an XCN, by role
PV1_PRACTITIONER_FIELDS = (
    (7, "attending"),
    (8, "referring"),
    (9, "consulting"),
    (17, "admitting"),
)


def practitioner_id(identifier: str) -> str:
    """Deterministic resource id for a practitioner identifier."""
    return stable_id("practitioner", identifier)


def build_practitioner(field: Field, ctx: BuildContext) -> Practitioner:
    """Build one Practitioner from an XCN field (``id^family^given``).

    Args:
        field: XCN field
        ctx: Build context

    Returns:
        Practitioner with an IDNPS identifier
    """
    parts = field.first_components()
    identifier = parts[0].strip() if parts else ""

    name = split_person_name(parts[1:])
    if name:
        name["use"] = "official"

    idnps = require_slice(ctx.catalog, "Practitioner", "IDNPS")
    return Practitioner(
        id=practitioner_id(identifier) if identifier else generate_id("practitioner"),
        meta=ctx.profile_meta("Practitioner"),
        identifier=[slice_identifier(idnps, identifier)] if identifier else None,
        name=[name] if name else None,
    )


def build_practitioners(pv1: Segment, ctx: BuildContext) -> List[Practitioner]:
    """One Practitioner per non-empty PV1 doctor field.

    The same identifier appearing in several roles yields one resource.
    """
    practitioners: Dict[str, Practitioner] = {}
    for number, role in PV1_PRACTITIONER_FIELDS:
        field = pv1.field(number)
        if field.is_absent():
            continue
        practitioner = build_practitioner(field, ctx)
        if practitioner.id in practitioners:
            logger.debug("Practitioner already built, skipping %s role", role)
            continue
        practitioners[practitioner.id] = practitioner
    return list(practitioners.values())


def build_practitioner_roles(
    rol_segments: Sequence[Segment], ctx: BuildContext
) -> List[PractitionerRole]:
    """PractitionerRoles from ROL segments (not mapped yet)."""
    return []


def build_practitioners_from_aip(
    aip_segments: Sequence[Segment], ctx: BuildContext
) -> List[Practitioner]:
    """Practitioners from SIU AIP segments (not mapped yet)."""
    return []


def build_practitioners_from_obr(obr: Segment, ctx: BuildContext) -> List[Practitioner]:
    """Ordering provider of OBR-16 (not mapped yet)."""
    return []
