"""ID generation utilities.

Every resource id and its bundle ``fullUrl`` come from the same value
produced here.
"""

import re
import uuid
from typing import Optional

# FHIR id datatype
FHIR_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-\.]{1,64}$")
MAX_ID_LENGTH = 64

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9\-\.]")


def generate_id(prefix: Optional[str] = None) -> str:
    """Generate a unique ID with optional prefix.

    Args:
        prefix: Optional prefix for the ID

    Returns:
        Generated unique ID
    """
    base_id = str(uuid.uuid4())

    if prefix:
        return f"{prefix}-{base_id}"

    return base_id


def urn_for(resource_id: str) -> str:
    """Bundle fullUrl for a resource id."""
    return f"urn:uuid:{resource_id}"


def stable_id(prefix: str, value: str) -> str:
    """Deterministic ID derived from a source value.

    Characters a FHIR id cannot hold become ``-`` and the result is cut to
    64 characters, so the same value always yields the same valid id.

    Args:
        prefix: Prefix for the ID
        value: Source value, e.g. a practitioner identifier

    Returns:
        ``{prefix}-{value}`` restricted to the FHIR id alphabet
    """
    candidate = f"{prefix}-{_UNSAFE_ID_CHARS.sub('-', value)}"
    return candidate[:MAX_ID_LENGTH]


def is_valid_id(value: Optional[str]) -> bool:
    """Whether a value is a valid FHIR resource id."""
    return bool(value) and FHIR_ID_PATTERN.match(value) is not None
