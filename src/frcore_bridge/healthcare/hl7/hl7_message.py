"""Parsed HL7 Message Model.

This module defines the immutable view of an already tokenized HL7 v2
message that the converter consumes: a mapping from segment code to one or
many segment instances, each an ordered 1-indexed sequence of fields.

Field values arrive from the tokenizer as ``None``, a string, or nested
lists (HL7 ``~`` repetitions and ``^`` components). They are wrapped into a
closed set of field variants so builders never have to inspect raw Python
types.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple

from frcore_bridge.utils.exceptions import SegmentShapeError

COMPONENT_SEPARATOR = "^"

_NUMERIC_LOOKING = re.compile(r"^\+?\d[\d .\-/]*$")


class Field:
    """An HL7 field: absent, a scalar string, or a repeated structure."""

    def is_absent(self) -> bool:
        """Whether the field carries no value."""
        raise NotImplementedError

    def text(self) -> str:
        """Raw value of the field, first repetition for repeated fields."""
        raise NotImplementedError

    def repetitions(self) -> List[Field]:
        """Repetitions of the field (``~``)."""
        raise NotImplementedError

    def components(self) -> List[str]:
        """Components (``^``) of the field as strings."""
        raise NotImplementedError

    def first_components(self) -> List[str]:
        """Components of the first repetition."""
        repetitions = self.repetitions()
        return repetitions[0].components() if repetitions else []

    def scalars(self) -> List[str]:
        """Every non-empty string found in the field, depth first."""
        raise NotImplementedError

    def first_numeric(self) -> Optional[str]:
        """First sub-field that looks like a phone number or other numeric value."""
        for value in self.scalars():
            if _NUMERIC_LOOKING.match(value.strip()):
                return value.strip()
        return None

    def __bool__(self) -> bool:
        return not self.is_absent()

    @staticmethod
    def from_raw(raw: Any) -> Field:
        """Wrap a raw tokenizer value.

        Args:
            raw: None, a string, or a (nested) list

        Returns:
            The matching field variant
        """
        if raw is None:
            return ABSENT
        if isinstance(raw, Field):
            return raw
        if isinstance(raw, (list, tuple)):
            items = tuple(Field.from_raw(item) for item in raw)
            if all(item.is_absent() for item in items):
                return ABSENT
            return RepeatedField(items)
        value = str(raw)
        if value == "":
            return ABSENT
        return ScalarField(value)


@dataclass(frozen=True)
class AbsentField(Field):
    """Field not sent, or sent empty."""

    def is_absent(self) -> bool:
        return True

    def text(self) -> str:
        return ""

    def repetitions(self) -> List[Field]:
        return []

    def components(self) -> List[str]:
        return []

    def scalars(self) -> List[str]:
        return []

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class ScalarField(Field):
    """Field holding a single string, possibly with ``^`` separated components."""

    value: str

    def is_absent(self) -> bool:
        return False

    def text(self) -> str:
        return self.value

    def repetitions(self) -> List[Field]:
        return [self]

    def components(self) -> List[str]:
        return self.value.split(COMPONENT_SEPARATOR)

    def scalars(self) -> List[str]:
        return [part for part in self.components() if part]

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class RepeatedField(Field):
    """Field holding an array: repetitions or components, depending on the reader."""

    items: Tuple[Field, ...]

    def is_absent(self) -> bool:
        return False

    def text(self) -> str:
        for item in self.items:
            if not item.is_absent():
                return item.text()
        return ""

    def repetitions(self) -> List[Field]:
        return [item for item in self.items if not item.is_absent()]

    def components(self) -> List[str]:
        # A single wrapped repetition, e.g. [["ID", "NAME"]]
        if len(self.items) == 1 and isinstance(self.items[0], RepeatedField):
            return self.items[0].components()
        values = []
        for item in self.items:
            if isinstance(item, RepeatedField):
                raise SegmentShapeError(
                    "Nested repetition found where components were expected"
                )
            values.append(item.text())
        return values

    def first_components(self) -> List[str]:
        # A flat array of plain values is one XPN/XCN sent as components
        if all(
            not isinstance(item, RepeatedField)
            and COMPONENT_SEPARATOR not in item.text()
            for item in self.items
        ):
            return self.components()
        return super().first_components()

    def scalars(self) -> List[str]:
        values: List[str] = []
        for item in self.items:
            values.extend(item.scalars())
        return values

    def __bool__(self) -> bool:
        return True


ABSENT = AbsentField()


@dataclass(frozen=True)
class Segment:
    """One HL7 segment instance with 1-indexed field access."""

    code: str
    fields: Tuple[Field, ...]

    def field(self, number: int) -> Field:
        """Get a field by HL7 number (1-based), absent when out of range."""
        index = number - 1
        if 0 <= index < len(self.fields):
            return self.fields[index]
        return ABSENT

    def __getitem__(self, number: int) -> Field:
        return self.field(number)

    @classmethod
    def from_raw(cls, raw: Sequence[Any]) -> Segment:
        """Build a segment from a tokenizer list (index 0 is the segment code)."""
        if not raw:
            raise SegmentShapeError("Empty segment")
        code = str(raw[0])
        return cls(code=code, fields=tuple(Field.from_raw(value) for value in raw[1:]))


class ParsedMessage:
    """Immutable mapping from segment code to segment instances."""

    def __init__(self, segments: Mapping[str, Sequence[Segment]]):
        """Initialize parsed message.

        Args:
            segments: Segment instances grouped by code
        """
        self._segments: Mapping[str, Tuple[Segment, ...]] = MappingProxyType(
            {code: tuple(instances) for code, instances in segments.items()}
        )

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ParsedMessage:
        """Build a message from the tokenizer output.

        Each value is either one raw segment (a list starting with the segment
        code) or a list of raw segments.

        Args:
            raw: Tokenizer output keyed by segment code

        Returns:
            Parsed message
        """
        segments = {}
        for code, value in raw.items():
            if not value:
                continue
            if isinstance(value, Segment):
                segments[code] = (value,)
            elif isinstance(value[0], str):
                segments[code] = (Segment.from_raw(value),)
            else:
                segments[code] = tuple(
                    item if isinstance(item, Segment) else Segment.from_raw(item)
                    for item in value
                )
        return cls(segments)

    def first(self, code: str) -> Optional[Segment]:
        """First instance of a segment, or None."""
        instances = self._segments.get(code)
        return instances[0] if instances else None

    def all(self, code: str) -> Tuple[Segment, ...]:
        """Every instance of a segment, in message order."""
        return self._segments.get(code, ())

    def has(self, code: str) -> bool:
        """Whether the segment is present."""
        return bool(self._segments.get(code))

    def codes(self) -> List[str]:
        """Segment codes present in the message."""
        return list(self._segments)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.has(code)

    def __iter__(self) -> Iterator[str]:
        return iter(self._segments)
