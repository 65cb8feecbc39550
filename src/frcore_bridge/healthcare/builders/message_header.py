"""MessageHeader builder (MSH + EVN)."""

import logging
from typing import Optional

from frcore_bridge.healthcare.builders.common import BuildContext
from frcore_bridge.healthcare.fhir.resources import MessageHeader
from frcore_bridge.healthcare.hl7.hl7_message import Segment
from frcore_bridge.healthcare.hl7.hl7_message_types import MessageType
from frcore_bridge.utils.date_formatting import (
    format_datetime_with_timezone,
    now_with_timezone,
)
from frcore_bridge.utils.id_generator import generate_id

logger = logging.getLogger(__name__)

DEFAULT_DESTINATION_NAME = "DESTINATION"
DEFAULT_SOURCE_NAME = "SOURCE"


def event_uri(ctx: BuildContext, message_type: MessageType) -> str:
    """Event URI of a message type, e.g. ``.../message/event/A01``."""
    event_code = message_type.event or message_type.group or message_type.code
    return f"{ctx.event_uri_base.rstrip('/')}/message/event/{event_code}"


def _text(segment: Optional[Segment], number: int) -> str:
    if segment is None:
        return ""
    return segment.field(number).text().strip()


def _endpoint(oid: str) -> str:
    return oid if oid.startswith("urn:") else f"urn:oid:{oid}"


def build_message_header(
    msh: Optional[Segment],
    evn: Optional[Segment],
    message_type: MessageType,
    ctx: BuildContext,
) -> MessageHeader:
    """Build the MessageHeader of a conversion.

    Destination comes from MSH-5/6 and source from MSH-3/4, with fixed OID
    endpoints when the facility is not sent.

    Args:
        msh: MSH segment, None when the message has none
        evn: Optional EVN segment
        message_type: Resolved MSH-9 message type
        ctx: Build context

    Returns:
        MessageHeader resource
    """
    catalog = ctx.catalog
    destination_oid = _text(msh, 6) or catalog.oid("defaultDestination") or ""
    source_oid = _text(msh, 4) or catalog.oid("defaultSource") or ""
    sending_application = _text(msh, 3)

    timestamp = format_datetime_with_timezone(_text(msh, 7), ctx.utc_offset)
    if timestamp is None:
        timestamp = format_datetime_with_timezone(_text(evn, 2), ctx.utc_offset)

    header = MessageHeader(
        id=generate_id(),
        meta=ctx.profile_meta("MessageHeader"),
        eventUri=event_uri(ctx, message_type),
        destination=[
            {
                "name": _text(msh, 5) or DEFAULT_DESTINATION_NAME,
                "endpoint": _endpoint(destination_oid),
            }
        ],
        sender={"display": sending_application or DEFAULT_SOURCE_NAME},
        source={
            "name": sending_application or DEFAULT_SOURCE_NAME,
            "endpoint": _endpoint(source_oid),
        },
        timestamp=timestamp or now_with_timezone(ctx.utc_offset),
    )
    logger.debug("Built MessageHeader for %s", message_type.code)
    return header
