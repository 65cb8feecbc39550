"""Encounter and Location builders (PV1 + EVN)."""

import logging
from typing import Any, Dict, Optional

from frcore_bridge.healthcare.builders.common import (
    BuildContext,
    patient_reference_or_placeholder,
    require_slice,
    slice_identifier,
)
from frcore_bridge.healthcare.fhir.resources import Encounter, Location
from frcore_bridge.healthcare.hl7.hl7_message import Segment
from frcore_bridge.utils.date_formatting import (
    format_datetime_with_timezone,
    now_with_timezone,
    shift_days,
)
from frcore_bridge.utils.id_generator import generate_id

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Encounter"

PATIENT_CLASS_MAP = {"I": "IMP", "E": "EMER"}
AMBULATORY = "AMB"
INPATIENT = "IMP"

# TRE_R213 placeholders until PV1-36/37 are mapped
ORIGIN_CODE = "01"
DESTINATION_CODE = "02"
EXPECTED_STAY_DAYS = 1


def map_patient_class(value: str) -> str:
    """Map PV1-2 patient class to an ActCode encounter class."""
    return PATIENT_CLASS_MAP.get(value.strip().upper(), AMBULATORY)


def _class_coding(code: str, ctx: BuildContext) -> Dict[str, Any]:
    value_set = ctx.catalog.value_set("encounterClass")
    if value_set is None:
        return {"code": code}
    return value_set.coding(code)


def _lieu_coding(code: str, ctx: BuildContext) -> Dict[str, Any]:
    value_set = ctx.catalog.value_set("lieuDePriseEnCharge")
    if value_set is None:
        return {"code": code}
    return value_set.coding(code)


def build_hospitalization(
    pv1: Segment, start: Optional[str], ctx: BuildContext
) -> Dict[str, Any]:
    """Hospitalization block of an inpatient encounter.

    The expected discharge date is fixed one day after the start.
    """
    hospitalization: Dict[str, Any] = {
        "origin": {"coding": [_lieu_coding(ORIGIN_CODE, ctx)]},
        "destination": {"coding": [_lieu_coding(DESTINATION_CODE, ctx)]},
    }

    pre_admission = pv1.field(5).text().strip()
    if pre_admission:
        hospitalization["preAdmissionIdentifier"] = {
            "system": ctx.catalog.system_url("VN"),
            "value": pre_admission,
        }

    discharge = shift_days(start or now_with_timezone(ctx.utc_offset), EXPECTED_STAY_DAYS)
    hospitalization["extension"] = [
        {
            "url": ctx.catalog.extension_url("estimatedDischargeDate"),
            "valueDateTime": discharge,
        }
    ]
    return hospitalization


def build_encounter(
    pv1: Segment,
    evn: Optional[Segment],
    ctx: BuildContext,
    patient_reference: Optional[str] = None,
) -> Encounter:
    """Build an FR-Core Encounter.

    Args:
        pv1: PV1 segment
        evn: Optional EVN segment, its recorded date is the fallback start
        ctx: Build context
        patient_reference: Reference to the Patient of the same Bundle

    Returns:
        Encounter resource
    """
    class_code = map_patient_class(pv1.field(2).text())

    start_value = pv1.field(44).text().strip()
    if not start_value and evn is not None:
        start_value = evn.field(2).text().strip()
    start = format_datetime_with_timezone(start_value, ctx.utc_offset)

    visit_number = pv1.field(19).text().strip()
    identifiers = None
    if visit_number:
        vn_slice = require_slice(ctx.catalog, "Encounter", "VN")
        identifiers = [slice_identifier(vn_slice, visit_number)]

    encounter = Encounter(
        id=generate_id(),
        meta=ctx.profile_meta("Encounter"),
        identifier=identifiers,
        status="finished",
        class_=_class_coding(class_code, ctx),
        subject=patient_reference_or_placeholder(patient_reference),
        period={"start": start} if start else None,
        hospitalization=(
            build_hospitalization(pv1, start, ctx) if class_code == INPATIENT else None
        ),
        extension=[
            {
                "url": ctx.catalog.extension_url("modePriseEnCharge"),
                "valueCodeableConcept": {"coding": [_class_coding(class_code, ctx)]},
            }
        ],
    )
    logger.debug("Built Encounter of class %s", class_code)
    return encounter


def build_location(pv1: Segment, ctx: BuildContext) -> Optional[Location]:
    """Location named and identified by PV1-3.

    Returns:
        Location resource, None when PV1-3 is absent
    """
    value = pv1.field(3).text().strip()
    if not value:
        return None
    return Location(
        id=generate_id(),
        meta=ctx.profile_meta("Location"),
        status="active",
        name=value,
        identifier=[
            {
                "use": "official",
                "system": ctx.catalog.system_url("LOCATION"),
                "value": value,
            }
        ],
    )
