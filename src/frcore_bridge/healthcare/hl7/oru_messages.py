"""HL7 ORU Message Conversion.

Unsolicited results (R01) become a DiagnosticReport and one Observation per
OBX.
"""

import logging

from frcore_bridge.healthcare.builders import (
    build_diagnostic_report,
    build_observations,
    build_practitioners_from_obr,
)
from frcore_bridge.healthcare.fhir.bundle import BundleAssembler
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.hl7_message_types import MessageFamily, MessageType
from frcore_bridge.healthcare.hl7.message_handler import FamilyHandler

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Observation"


class ORUMessageHandler(FamilyHandler):
    """Handler for ORU^R01."""

    family = MessageFamily.ORU

    def handle(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> None:
        """Append Patient, DiagnosticReport, Observations, OBR-16 Practitioners."""
        patient_reference = self.append_patient(assembler, message)

        obr = message.first("OBR")
        obx_segments = message.all("OBX")
        if obr is not None and obx_segments:
            assembler.append(
                build_diagnostic_report(obr, obx_segments, self.ctx, patient_reference)
            )

        if obx_segments:
            assembler.extend(
                build_observations(obx_segments, self.ctx, patient_reference)
            )

        if obr is not None:
            assembler.extend(build_practitioners_from_obr(obr, self.ctx))

        logger.debug("ORU %s converted into %d entries", message_type.event, len(assembler))

