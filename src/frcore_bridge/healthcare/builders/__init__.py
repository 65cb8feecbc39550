"""Segment-to-resource builders.

Each builder turns one or more HL7 segments into FR-Core FHIR resources
without touching its input.
"""

from frcore_bridge.healthcare.builders.common import BuildContext
from frcore_bridge.healthcare.builders.coverage import build_coverage
from frcore_bridge.healthcare.builders.encounter import build_encounter, build_location
from frcore_bridge.healthcare.builders.message_header import build_message_header
from frcore_bridge.healthcare.builders.patient import build_patient
from frcore_bridge.healthcare.builders.placeholders import (
    build_appointment,
    build_diagnostic_report,
    build_locations_from_ail,
    build_observations,
    build_resources_from_ais,
    build_service_request,
)
from frcore_bridge.healthcare.builders.practitioner import (
    build_practitioner_roles,
    build_practitioners,
    build_practitioners_from_aip,
    build_practitioners_from_obr,
)
from frcore_bridge.healthcare.builders.related_person import build_related_persons

__all__ = [
    "BuildContext",
    "build_appointment",
    "build_coverage",
    "build_diagnostic_report",
    "build_encounter",
    "build_location",
    "build_locations_from_ail",
    "build_message_header",
    "build_observations",
    "build_patient",
    "build_practitioner_roles",
    "build_practitioners",
    "build_practitioners_from_aip",
    "build_practitioners_from_obr",
    "build_related_persons",
    "build_resources_from_ais",
    "build_service_request",
]
