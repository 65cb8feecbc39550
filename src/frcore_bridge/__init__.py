"""FR-Core HL7 bridge.

Converts parsed HL7 v2 messages into FHIR R4 message Bundles conformant to
the French FR-Core profiles, and validates Bundles against those profiles.
"""

from frcore_bridge.healthcare.fhir.bundle import Bundle
from frcore_bridge.healthcare.fhir_profiles import ProfileRuleCatalog, load_catalog
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.message_dispatcher import MessageDispatcher, convert
from frcore_bridge.healthcare.validation.frcore_validator import (
    ValidationResult,
    validate,
)

__version__ = "1.0.0"

__all__ = [
    "Bundle",
    "MessageDispatcher",
    "ParsedMessage",
    "ProfileRuleCatalog",
    "ValidationResult",
    "convert",
    "load_catalog",
    "validate",
]
