"""HL7 date/time conversion.

HL7 ``YYYYMMDD[HHMM[SS]]`` values are re-emitted as ISO-8601. Date/times
always carry a fixed offset (``+02:00`` unless configured otherwise); no
daylight saving calculation is attempted.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_UTC_OFFSET = "+02:00"

_HL7_TIMESTAMP = re.compile(r"^(\d{8})(\d{2})?(\d{2})?(\d{2})?")


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    match = _HL7_TIMESTAMP.match(value.strip())
    if not match:
        return None
    date_part, hour, minute, second = match.groups()
    try:
        return datetime.strptime(
            f"{date_part}{hour or '00'}{minute or '00'}{second or '00'}",
            "%Y%m%d%H%M%S",
        )
    except ValueError:
        logger.debug("Unparseable HL7 timestamp")
        return None


def offset_timezone(offset: str = DEFAULT_UTC_OFFSET) -> timezone:
    """Build a fixed timezone from a ``+HH:MM`` string."""
    sign = -1 if offset.startswith("-") else 1
    hours, minutes = offset[1:].split(":")
    return timezone(sign * timedelta(hours=int(hours), minutes=int(minutes)))


def format_date(value: Optional[str]) -> Optional[str]:
    """Convert an HL7 date (or timestamp) to ``YYYY-MM-DD``.

    Args:
        value: HL7 ``YYYYMMDD`` value, any time part is ignored

    Returns:
        ISO date or None when the value is absent or invalid
    """
    parsed = _parse(value)
    if parsed is None:
        return None
    return parsed.strftime("%Y-%m-%d")


def format_datetime_with_timezone(
    value: Optional[str], offset: str = DEFAULT_UTC_OFFSET
) -> Optional[str]:
    """Convert an HL7 timestamp to ISO-8601 with a fixed offset.

    A date-only value gets a zero-padded time: ``20250618`` becomes
    ``2025-06-18T00:00:00+02:00``.

    Args:
        value: HL7 ``YYYYMMDD[HHMMSS]`` value
        offset: Offset appended verbatim

    Returns:
        ISO date/time or None when the value is absent or invalid
    """
    parsed = _parse(value)
    if parsed is None:
        return None
    return f"{parsed.strftime('%Y-%m-%dT%H:%M:%S')}{offset}"


def now_with_timezone(offset: str = DEFAULT_UTC_OFFSET) -> str:
    """Current time as ISO-8601 in the fixed offset."""
    return datetime.now(offset_timezone(offset)).isoformat(timespec="seconds")


def shift_days(iso_value: str, days: int) -> str:
    """Shift an ISO date/time produced by this module by whole days."""
    parsed = datetime.fromisoformat(iso_value)
    return (parsed + timedelta(days=days)).isoformat(timespec="seconds")
