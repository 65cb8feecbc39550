"""HL7 ADT Message Conversion.

This module converts ADT (Admit, Discharge, Transfer) messages into the
FR-Core patient administration resources.
"""

import logging

from frcore_bridge.healthcare.builders import (
    build_coverage,
    build_encounter,
    build_location,
    build_practitioner_roles,
    build_practitioners,
    build_related_persons,
)
from frcore_bridge.healthcare.fhir.bundle import BundleAssembler
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.hl7_message_types import MessageFamily, MessageType
from frcore_bridge.healthcare.hl7.message_handler import FamilyHandler

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Encounter"


class ADTMessageHandler(FamilyHandler):
    """Handler for ADT^A01/A02/A03/A04/A08."""

    family = MessageFamily.ADT

    def handle(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> None:
        """Append Patient, Encounter, Location, Practitioners, RelatedPersons, Coverage.

        Args:
            assembler: Bundle being built
            message: Parsed HL7 message
            message_type: Resolved message type
        """
        patient_reference = self.append_patient(assembler, message)

        pv1 = message.first("PV1")
        if pv1 is not None:
            assembler.append(
                build_encounter(pv1, message.first("EVN"), self.ctx, patient_reference)
            )

            location = build_location(pv1, self.ctx)
            if location is not None:
                assembler.append(location)

            assembler.extend(build_practitioners(pv1, self.ctx))

        if message.has("ROL"):
            assembler.extend(build_practitioner_roles(message.all("ROL"), self.ctx))

        if message.has("NK1"):
            assembler.extend(
                build_related_persons(message.all("NK1"), self.ctx, patient_reference)
            )

        in1 = message.first("IN1")
        if in1 is not None:
            assembler.extend(
                build_coverage(in1, message.first("IN2"), self.ctx, patient_reference)
            )

        logger.debug("ADT %s converted into %d entries", message_type.event, len(assembler))
