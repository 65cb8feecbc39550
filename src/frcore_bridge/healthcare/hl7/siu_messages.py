"""HL7 SIU Message Conversion.

Scheduling messages (S12 to S15) become an Appointment plus the resources
booked for it.
"""

import logging

from frcore_bridge.healthcare.builders import (
    build_appointment,
    build_locations_from_ail,
    build_practitioners_from_aip,
    build_resources_from_ais,
)
from frcore_bridge.healthcare.fhir.bundle import BundleAssembler
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.hl7_message_types import MessageFamily, MessageType
from frcore_bridge.healthcare.hl7.message_handler import FamilyHandler

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Appointment"


class SIUMessageHandler(FamilyHandler):
    """Handler for SIU^S12/S13/S14/S15."""

    family = MessageFamily.SIU

    def handle(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> None:
        """Append Patient, Appointment and the AIP/AIL/AIS resources."""
        self.append_patient(assembler, message)

        sch = message.first("SCH")
        if sch is not None:
            assembler.append(build_appointment(sch, message.first("NTE"), self.ctx))

        if message.has("AIP"):
            assembler.extend(build_practitioners_from_aip(message.all("AIP"), self.ctx))
        if message.has("AIL"):
            assembler.extend(build_locations_from_ail(message.all("AIL"), self.ctx))
        if message.has("AIS"):
            assembler.extend(build_resources_from_ais(message.all("AIS"), self.ctx))

        logger.debug("SIU %s converted into %d entries", message_type.event, len(assembler))
