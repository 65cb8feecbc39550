"""Placeholder builders for scheduling, orders and results.

These resources only carry a status and are tagged ``Completeness.STUB``
until SCH, ORC, OBR and OBX are fully mapped.
"""

from typing import List, Optional, Sequence

from frcore_bridge.healthcare.builders.common import BuildContext
from frcore_bridge.healthcare.fhir.resources import (
    Appointment,
    DiagnosticReport,
    Location,
    Observation,
    Resource,
    ServiceRequest,
)
from frcore_bridge.healthcare.hl7.hl7_message import Segment
from frcore_bridge.utils.id_generator import generate_id


def _subject(patient_reference: Optional[str]) -> Optional[dict]:
    return {"reference": patient_reference} if patient_reference else None


def build_appointment(
    sch: Segment, nte: Optional[Segment], ctx: BuildContext
) -> Appointment:
    """Appointment for a SIU message."""
    return Appointment(id=generate_id(), status="booked")


def build_service_request(
    orc: Segment,
    obr: Segment,
    ctx: BuildContext,
    patient_reference: Optional[str] = None,
) -> ServiceRequest:
    """ServiceRequest for an ORM order."""
    return ServiceRequest(
        id=generate_id(), status="active", subject=_subject(patient_reference)
    )


def build_diagnostic_report(
    obr: Segment,
    obx_segments: Sequence[Segment],
    ctx: BuildContext,
    patient_reference: Optional[str] = None,
) -> DiagnosticReport:
    """DiagnosticReport for an order or result."""
    return DiagnosticReport(
        id=generate_id(), status="final", subject=_subject(patient_reference)
    )


def build_observations(
    obx_segments: Sequence[Segment],
    ctx: BuildContext,
    patient_reference: Optional[str] = None,
) -> List[Observation]:
    """One Observation per OBX."""
    return [
        Observation(id=generate_id(), status="final", subject=_subject(patient_reference))
        for _ in obx_segments
    ]


def build_locations_from_ail(
    ail_segments: Sequence[Segment], ctx: BuildContext
) -> List[Location]:
    """Locations of SIU AIL segments (not mapped yet)."""
    return []


def build_resources_from_ais(
    ais_segments: Sequence[Segment], ctx: BuildContext
) -> List[Resource]:
    """Scheduled services of SIU AIS segments (not mapped yet)."""
    return []
