"""HL7 ORM Message Conversion.

General orders (O01) become a ServiceRequest, with a DiagnosticReport when
results are already attached.
"""

import logging

from frcore_bridge.healthcare.builders import (
    build_diagnostic_report,
    build_practitioners_from_obr,
    build_service_request,
)
from frcore_bridge.healthcare.fhir.bundle import BundleAssembler
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.hl7_message_types import MessageFamily, MessageType
from frcore_bridge.healthcare.hl7.message_handler import FamilyHandler

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "ServiceRequest"


class ORMMessageHandler(FamilyHandler):
    """Handler for ORM^O01."""

    family = MessageFamily.ORM

    def handle(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> None:
        """Append Patient, ServiceRequest, OBR-16 Practitioners, DiagnosticReport."""
        patient_reference = self.append_patient(assembler, message)

        orc = message.first("ORC")
        obr = message.first("OBR")
        if orc is not None and obr is not None:
            assembler.append(build_service_request(orc, obr, self.ctx, patient_reference))

        if obr is not None:
            assembler.extend(build_practitioners_from_obr(obr, self.ctx))

        if obr is not None and message.has("OBX"):
            assembler.append(
                build_diagnostic_report(
                    obr, message.all("OBX"), self.ctx, patient_reference
                )
            )

        logger.debug("ORM %s converted into %d entries", message_type.event, len(assembler))
