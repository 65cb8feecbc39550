"""HL7 v2 Message Types.

This module resolves the MSH-9 message type of a parsed message and maps it
onto the family handler that converts it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .hl7_message import Segment

logger = logging.getLogger(__name__)

UNKNOWN_MESSAGE_TYPE = "UNKNOWN"


class MessageFamily(Enum):
    """Family handlers available to the dispatcher."""

    ADT = "ADT"  # Patient administration
    SIU = "SIU"  # Scheduling
    ORM = "ORM"  # Orders
    ORU = "ORU"  # Results
    GENERIC = "GENERIC"  # Best effort fallback


class HL7MessageType(Enum):
    """HL7 v2 message types with a dedicated family handler."""

    # Patient Administration
    ADT_A01 = "ADT^A01"  # Admit/visit notification
    ADT_A02 = "ADT^A02"  # Transfer a patient
    ADT_A03 = "ADT^A03"  # Discharge/end visit
    ADT_A04 = "ADT^A04"  # Register a patient
    ADT_A08 = "ADT^A08"  # Update patient information

    # Scheduling
    SIU_S12 = "SIU^S12"  # Notification of new appointment
    SIU_S13 = "SIU^S13"  # Notification of appointment rescheduling
    SIU_S14 = "SIU^S14"  # Notification of appointment modification
    SIU_S15 = "SIU^S15"  # Notification of appointment cancellation

    # Orders
    ORM_O01 = "ORM^O01"  # General order message

    # Results
    ORU_R01 = "ORU^R01"  # Unsolicited observation result


_ROUTES: Dict[HL7MessageType, MessageFamily] = {
    HL7MessageType.ADT_A01: MessageFamily.ADT,
    HL7MessageType.ADT_A02: MessageFamily.ADT,
    HL7MessageType.ADT_A03: MessageFamily.ADT,
    HL7MessageType.ADT_A04: MessageFamily.ADT,
    HL7MessageType.ADT_A08: MessageFamily.ADT,
    HL7MessageType.SIU_S12: MessageFamily.SIU,
    HL7MessageType.SIU_S13: MessageFamily.SIU,
    HL7MessageType.SIU_S14: MessageFamily.SIU,
    HL7MessageType.SIU_S15: MessageFamily.SIU,
    HL7MessageType.ORM_O01: MessageFamily.ORM,
    HL7MessageType.ORU_R01: MessageFamily.ORU,
}


@dataclass(frozen=True)
class MessageType:
    """A resolved (group, event) pair from MSH-9."""

    group: str
    event: str = ""
    structure: str = ""

    @property
    def code(self) -> str:
        """Message type as written in HL7, e.g. ``ADT^A01``."""
        if not self.group:
            return UNKNOWN_MESSAGE_TYPE
        if not self.event:
            return self.group
        return f"{self.group}^{self.event}"

    @property
    def known_type(self) -> Optional[HL7MessageType]:
        """The supported message type, None when unrecognized."""
        try:
            return HL7MessageType(self.code)
        except ValueError:
            return None

    @property
    def family(self) -> MessageFamily:
        """Family handler for this message type."""
        known = self.known_type
        if known is None:
            return MessageFamily.GENERIC
        return _ROUTES[known]

    @property
    def is_supported(self) -> bool:
        """Whether a dedicated family handler exists."""
        return self.known_type is not None

    def __str__(self) -> str:
        return self.code


UNKNOWN = MessageType(group="")


def extract_message_type(msh: Optional[Segment]) -> MessageType:
    """Extract the message type from MSH-9.

    Handles both the scalar ``"ADT^A01"`` and component array
    ``["ADT", "A01"]`` encodings.

    Args:
        msh: MSH segment, if any

    Returns:
        Resolved message type, ``UNKNOWN`` when MSH or MSH-9 is absent
    """
    if msh is None:
        return UNKNOWN
    field = msh.field(9)
    if field.is_absent():
        return UNKNOWN

    parts: Tuple[str, ...] = tuple(part.strip() for part in field.components())
    group = parts[0] if parts else ""
    event = parts[1] if len(parts) > 1 else ""
    structure = parts[2] if len(parts) > 2 else ""
    message_type = MessageType(group=group, event=event, structure=structure)

    if not message_type.is_supported:
        logger.warning("Unsupported message type: %s", message_type.code)
    return message_type


def supported_message_types() -> Tuple[str, ...]:
    """Every message type with a dedicated family handler."""
    return tuple(message_type.value for message_type in HL7MessageType)
