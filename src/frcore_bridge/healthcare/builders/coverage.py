"""Coverage builder (IN1 + IN2) and its payor Organization."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from frcore_bridge.healthcare.builders.common import (
    BuildContext,
    patient_reference_or_placeholder,
    reference_to,
)
from frcore_bridge.healthcare.fhir.resources import Coverage, Organization
from frcore_bridge.healthcare.hl7.hl7_message import Segment
from frcore_bridge.utils.date_formatting import format_date
from frcore_bridge.utils.id_generator import generate_id

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Coverage"

COVERAGE_TYPE = "AMO"
PAYOR_NAME = "Assurance Maladie Obligatoire"
PAYOR_IDENTIFIER = "AMO-CPAM"


def _period(in1: Segment) -> Optional[Dict[str, str]]:
    period = {}
    start = format_date(in1.field(12).text())
    end = format_date(in1.field(13).text())
    if start:
        period["start"] = start
    if end:
        period["end"] = end
    return period or None


def build_payor(in1: Segment, ctx: BuildContext) -> Organization:
    """Payor Organization; IN1-3 overrides the default AMO identifier."""
    company_id = in1.field(3).components()
    identifier_value = company_id[0].strip() if company_id else ""
    return Organization(
        id=generate_id(),
        meta=ctx.profile_meta("Organization"),
        active=True,
        name=PAYOR_NAME,
        identifier=[
            {
                "use": "official",
                "system": ctx.catalog.system_url("ORGANIZATION"),
                "value": identifier_value or PAYOR_IDENTIFIER,
            }
        ],
    )


def build_coverage(
    in1: Segment,
    in2: Optional[Segment],
    ctx: BuildContext,
    patient_reference: Optional[str] = None,
) -> Tuple[Coverage, Organization]:
    """Build the AMO Coverage and its payor.

    Args:
        in1: IN1 segment
        in2: Optional IN2 segment (not mapped yet)
        ctx: Build context
        patient_reference: Reference to the Patient of the same Bundle

    Returns:
        Coverage and payor Organization, always both
    """
    payor = build_payor(in1, ctx)

    extensions: List[Dict[str, Any]] = []
    insured_id = in1.field(36).text().strip()
    if insured_id:
        extensions.append(
            {
                "url": ctx.catalog.extension_url("coverageInsuredId"),
                "valueIdentifier": {
                    "system": ctx.catalog.system_url("INS-NIR"),
                    "value": insured_id,
                },
            }
        )

    plan_id = in1.field(2).text().strip()
    coverage_type = ctx.catalog.value_set("coverageType")
    type_coding: Dict[str, Any] = (
        coverage_type.coding(COVERAGE_TYPE) if coverage_type else {"code": COVERAGE_TYPE}
    )

    coverage = Coverage(
        id=generate_id(),
        meta=ctx.profile_meta("Coverage"),
        status="active",
        identifier=[{"value": plan_id}] if plan_id else None,
        type={"coding": [type_coding]},
        beneficiary=patient_reference_or_placeholder(patient_reference),
        period=_period(in1),
        payor=[dict(reference_to("Organization", payor.id), display=PAYOR_NAME)],
        extension=extensions or None,
    )
    logger.debug("Built Coverage with insured id=%s", bool(insured_id))
    return coverage, payor
