"""Base class of the HL7 family handlers."""

import logging
from typing import Optional

from frcore_bridge.healthcare.builders import BuildContext, build_patient
from frcore_bridge.healthcare.fhir.bundle import BundleAssembler
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.hl7_message_types import MessageFamily, MessageType

logger = logging.getLogger(__name__)


class FamilyHandler:
    """Appends the resources of one message family to a Bundle.

    Subclasses append in a fixed clinical order and skip every step whose
    segments are missing. Entries appended by a previous step are never
    removed or reordered.
    """

    family = MessageFamily.GENERIC

    def __init__(self, ctx: BuildContext):
        """Initialize handler.

        Args:
            ctx: Build context shared by the builders
        """
        self.ctx = ctx

    def handle(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> None:
        """Append the family's resources.

        Args:
            assembler: Bundle being built, MessageHeader already appended
            message: Parsed HL7 message
            message_type: Resolved message type
        """
        raise NotImplementedError

    def append_patient(
        self, assembler: BundleAssembler, message: ParsedMessage
    ) -> Optional[str]:
        """Append the Patient built from PID (+PD1).

        Returns:
            Reference to the Patient, None when PID is absent
        """
        pid = message.first("PID")
        if pid is None:
            logger.debug("No PID segment, Patient skipped")
            return None
        patient = build_patient(pid, message.first("PD1"), self.ctx)
        assembler.append(patient)
        return patient.reference()


class GenericMessageHandler(FamilyHandler):
    """Best effort handler for unsupported message types: Patient only."""

    family = MessageFamily.GENERIC

    def handle(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> None:
        """Append the Patient when PID is present."""
        logger.info("Generic conversion of %s", message_type.code)
        self.append_patient(assembler, message)
