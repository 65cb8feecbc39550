"""HL7 v2 to FR-Core Bundle conversion entry point.

The dispatcher resolves the MSH-9 message type, always appends the
MessageHeader first, then hands the Bundle to the family handler of the
message type. It is the single failure boundary of a conversion: any error
is recorded as an OperationOutcome entry and the partial Bundle is
returned, so ``convert`` never raises.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, Union

from frcore_bridge.config import Settings, get_settings
from frcore_bridge.healthcare.builders import BuildContext, build_message_header
from frcore_bridge.healthcare.builders.common import DEFAULT_EVENT_URI_BASE
from frcore_bridge.healthcare.fhir.bundle import (
    Bundle,
    BundleAssembler,
    operation_outcome_for,
)
from frcore_bridge.healthcare.fhir.resources import MessageHeader
from frcore_bridge.healthcare.fhir_profiles import ProfileRuleCatalog, load_catalog
from frcore_bridge.healthcare.hl7.adt_messages import ADTMessageHandler
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage
from frcore_bridge.healthcare.hl7.hl7_message_types import (
    UNKNOWN,
    MessageFamily,
    MessageType,
    extract_message_type,
)
from frcore_bridge.healthcare.hl7.message_handler import (
    FamilyHandler,
    GenericMessageHandler,
)
from frcore_bridge.healthcare.hl7.orm_messages import ORMMessageHandler
from frcore_bridge.healthcare.hl7.oru_messages import ORUMessageHandler
from frcore_bridge.healthcare.hl7.siu_messages import SIUMessageHandler
from frcore_bridge.utils.date_formatting import DEFAULT_UTC_OFFSET, now_with_timezone
from frcore_bridge.utils.exceptions import ConversionFault
from frcore_bridge.utils.id_generator import generate_id
from frcore_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Bundle"

FAMILY_HANDLERS: Dict[MessageFamily, Type[FamilyHandler]] = {
    handler_class.family: handler_class
    for handler_class in (
        ADTMessageHandler,
        SIUMessageHandler,
        ORMMessageHandler,
        ORUMessageHandler,
        GenericMessageHandler,
    )
}

MessageInput = Union[ParsedMessage, Mapping[str, Any]]


def _contain(
    message_type: MessageType, step: Callable[..., Any], *args: Any
) -> Tuple[Any, Optional[ConversionFault]]:
    """Run a conversion step, turning any failure into a ConversionFault."""
    try:
        return step(*args), None
    except Exception as e:  # pylint: disable=broad-exception-caught
        reason = str(e) or e.__class__.__name__
        logger.error(
            "conversion_failed",
            message_type=message_type.code,
            step=getattr(step, "__name__", repr(step)),
            error_type=e.__class__.__name__,
            exc_info=True,
        )
        return None, ConversionFault(message_type.code, reason)


def _as_parsed_message(message: MessageInput) -> ParsedMessage:
    if isinstance(message, ParsedMessage):
        return message
    return ParsedMessage.from_raw(message)


def fallback_message_header(
    message_type: MessageType,
    utc_offset: str,
    event_uri_base: str = DEFAULT_EVENT_URI_BASE,
) -> MessageHeader:
    """Minimal MessageHeader used when the real one cannot be built."""
    event_code = message_type.event or message_type.code
    return MessageHeader(
        id=generate_id(),
        eventUri=f"{event_uri_base.rstrip('/')}/message/event/{event_code}",
        destination=[{"name": "DESTINATION"}],
        source={"name": "SOURCE"},
        timestamp=now_with_timezone(utc_offset),
    )


class MessageDispatcher:
    """Routes parsed HL7 messages to their family handler."""

    def __init__(
        self,
        catalog: Optional[ProfileRuleCatalog] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize dispatcher.

        Args:
            catalog: Rule catalog, defaults to the loaded catalog
            settings: Settings, defaults to the cached settings
        """
        settings = settings or get_settings()
        self.ctx = BuildContext(
            catalog=catalog or load_catalog(),
            utc_offset=settings.utc_offset,
            event_uri_base=settings.event_uri_base,
        )
        self.handlers: Dict[MessageFamily, FamilyHandler] = {
            family: handler_class(self.ctx)
            for family, handler_class in FAMILY_HANDLERS.items()
        }

    def handler_for(self, message_type: MessageType) -> FamilyHandler:
        """Family handler of a message type."""
        return self.handlers[message_type.family]

    def convert(self, message: MessageInput) -> Bundle:
        """Convert a parsed HL7 message into an FR-Core message Bundle.

        Args:
            message: Parsed message or raw tokenizer output

        Returns:
            Bundle whose first entry is the MessageHeader; an OperationOutcome
            entry is appended when the conversion failed part way
        """
        utc_offset = self.ctx.utc_offset
        assembler, fault = _contain(UNKNOWN, BundleAssembler, utc_offset)
        if assembler is None:
            utc_offset = DEFAULT_UTC_OFFSET
            assembler = BundleAssembler(utc_offset)

        parsed: Optional[ParsedMessage] = None
        message_type = UNKNOWN
        if fault is None:
            parsed, fault = _contain(UNKNOWN, _as_parsed_message, message)
        if fault is None:
            resolved, fault = _contain(
                UNKNOWN, extract_message_type, parsed.first("MSH")
            )
            if resolved is not None:
                message_type = resolved

        logger.info(
            "conversion_started",
            message_type=message_type.code,
            structure=message_type.structure or None,
            family=message_type.family.value,
        )

        header: Optional[MessageHeader] = None
        # builders stamp dates with the context offset, skip them when it failed
        if utc_offset == self.ctx.utc_offset:
            header, header_fault = _contain(
                message_type,
                build_message_header,
                parsed.first("MSH") if parsed is not None else None,
                parsed.first("EVN") if parsed is not None else None,
                message_type,
                self.ctx,
            )
            fault = fault or header_fault
        if header is None:
            header = fallback_message_header(
                message_type, utc_offset, self.ctx.event_uri_base
            )
        assembler.append(header)

        if fault is None:
            fault = self._dispatch(assembler, parsed, message_type)

        if fault is not None:
            assembler.append(operation_outcome_for(fault))

        bundle = assembler.build()
        logger.info(
            "conversion_completed",
            message_type=message_type.code,
            entries=len(bundle.entry),
            stubs=len(bundle.stub_entries()),
            failed=fault is not None,
        )
        return bundle

    def _dispatch(
        self,
        assembler: BundleAssembler,
        message: ParsedMessage,
        message_type: MessageType,
    ) -> Optional[ConversionFault]:
        handler = self.handler_for(message_type)
        _, fault = _contain(message_type, handler.handle, assembler, message, message_type)
        return fault


def _minimal_bundle(reason: str) -> Bundle:
    settings_offset = DEFAULT_UTC_OFFSET
    try:
        settings_offset = get_settings().utc_offset
    except Exception:  # pylint: disable=broad-exception-caught
        logger.warning("settings_unavailable")
    assembler = BundleAssembler(settings_offset)
    assembler.append(fallback_message_header(UNKNOWN, settings_offset))
    assembler.append(operation_outcome_for(ConversionFault(UNKNOWN.code, reason)))
    return assembler.build()


def convert(
    message: MessageInput, catalog: Optional[ProfileRuleCatalog] = None
) -> Bundle:
    """Convert a parsed HL7 message into an FR-Core message Bundle.

    Never raises: failures are reported as an OperationOutcome entry.

    Args:
        message: Parsed message or raw tokenizer output
        catalog: Rule catalog, defaults to the loaded catalog

    Returns:
        FHIR message Bundle
    """
    try:
        dispatcher = MessageDispatcher(catalog)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("conversion_failed", step="setup", exc_info=True)
        return _minimal_bundle(str(e) or e.__class__.__name__)
    return dispatcher.convert(message)
