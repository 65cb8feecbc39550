"""Test configuration for the FR-Core HL7 bridge.

Provides an ER7 helper that turns pipe-delimited HL7 text into the raw
tokenizer shape consumed by ``ParsedMessage.from_raw``, plus ADT, SIU, ORM
and ORU message fixtures.
"""

import logging
from typing import Any, Dict, List, Mapping

import pytest

from frcore_bridge.config import get_settings
from frcore_bridge.healthcare.builders import BuildContext
from frcore_bridge.healthcare.fhir_profiles import clear_catalog_cache, load_catalog
from frcore_bridge.healthcare.hl7.hl7_message import ParsedMessage

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

REPETITION_SEPARATOR = "~"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "fhir_compliance: mark test as checking FR-Core conformance"
    )


def hl7_line(code: str, fields: Mapping[int, str]) -> str:
    """Render one ER7 segment from HL7 field numbers.

    For MSH, field 1 is the separator itself, so numbering starts at MSH-2.
    """
    first = 2 if code == "MSH" else 1
    last = max(fields) if fields else first
    values = [fields.get(number, "") for number in range(first, last + 1)]
    return "|".join([code] + values)


def er7(text: str) -> Dict[str, List[List[Any]]]:
    """Tokenize ER7 text into ``{code: [raw segment, ...]}``.

    Index 0 of a raw segment is its code so index ``n`` is HL7 field ``n``;
    fields with ``~`` become lists of repetitions.
    """
    raw: Dict[str, List[List[Any]]] = {}
    for line in text.replace("\r", "\n").split("\n"):
        line = line.strip()
        if not line:
            continue
        values = line.split("|")
        code = values[0]
        if code == "MSH":
            segment: List[Any] = ["MSH", "|", values[1]] + [
                _field(value) for value in values[2:]
            ]
        else:
            segment = [code] + [_field(value) for value in values[1:]]
        raw.setdefault(code, []).append(segment)
    return raw


def _field(value: str) -> Any:
    if REPETITION_SEPARATOR in value:
        return value.split(REPETITION_SEPARATOR)
    return value


def msh(message_type: str, **overrides: str) -> str:
    """MSH line for a message type."""
    fields = {
        2: "^~\\&",
        3: "SENDING_APP",
        4: "1.2.250.1.211.10.200.2",
        5: "RECEIVING_APP",
        6: "1.2.250.1.213.1.4.9",
        7: "20250618120000",
        9: message_type,
        10: "MSG00001",
        11: "P",
        12: "2.5",
    }
    for key, value in overrides.items():
        fields[int(key.lstrip("f"))] = value
    return hl7_line("MSH", fields)


PID_LINE = hl7_line(
    "PID",
    {
        1: "1",
        3: "12345^^^HOSPITAL^MR~123456789012345",
        5: "DUPONT^JEAN^PIERRE^JEAN",
        7: "19800115",
        8: "M",
        11: "12 RUE DE LA PAIX^^PARIS^^75001^FRA",
        13: "0102030405",
        14: "jean.dupont@example.fr",
        23: "LYON",
        35: "VALI",
    },
)
PD1_LINE = hl7_line("PD1", {4: "10003456789^MARTIN^CLAIRE"})
EVN_LINE = hl7_line("EVN", {1: "A01", 2: "20250618115500"})
PV1_LINE = hl7_line(
    "PV1",
    {
        1: "1",
        2: "I",
        3: "CARDIO^101^A",
        5: "PRE123",
        7: "10001234567^MARTIN^PAUL",
        8: "10007654321^DURAND^SOPHIE",
        17: "10001234567^MARTIN^PAUL",
        19: "VN2025001",
        44: "20250618100000",
    },
)
NK1_LINE = hl7_line(
    "NK1",
    {
        1: "1",
        2: "DUPONT^MARIE",
        3: "MTH^Mother^HL70063",
        4: "12 RUE DE LA PAIX^^PARIS^^75001^FRA",
        5: "0612345678",
    },
)
IN1_LINE = hl7_line(
    "IN1",
    {
        1: "1",
        2: "AMO01",
        3: "CPAM75^^^CPAM",
        12: "20250101",
        13: "20251231",
        36: "123456789012345",
    },
)
SCH_LINE = hl7_line("SCH", {1: "APT001", 11: "^^30^20250620090000"})
ORC_LINE = hl7_line("ORC", {1: "NW", 2: "ORD001"})
OBR_LINE = hl7_line("OBR", {1: "1", 2: "ORD001", 4: "24331-1^Lipid panel^LN"})
OBX_LINES = [
    hl7_line("OBX", {1: "1", 2: "NM", 3: "2093-3^Cholesterol^LN", 5: "5.2"}),
    hl7_line("OBX", {1: "2", 2: "NM", 3: "2571-8^Triglycerides^LN", 5: "1.4"}),
]


def message_text(message_type: str, *lines: str) -> str:
    """ER7 text of a message: MSH followed by the given segments."""
    return "\r".join([msh(message_type)] + list(lines))


ADT_A01_TEXT = message_text(
    "ADT^A01^ADT_A01",
    EVN_LINE,
    PID_LINE,
    PD1_LINE,
    NK1_LINE,
    PV1_LINE,
    IN1_LINE,
)
SIU_S12_TEXT = message_text("SIU^S12^SIU_S12", SCH_LINE, PID_LINE)
ORM_O01_TEXT = message_text("ORM^O01^ORM_O01", PID_LINE, ORC_LINE, OBR_LINE, *OBX_LINES)
ORU_R01_TEXT = message_text("ORU^R01^ORU_R01", PID_LINE, OBR_LINE, *OBX_LINES)


@pytest.fixture(autouse=True)
def reset_caches():
    """Drop cached settings and catalogs around each test."""
    get_settings.cache_clear()
    clear_catalog_cache()
    yield
    get_settings.cache_clear()
    clear_catalog_cache()


@pytest.fixture
def catalog():
    """Embedded FR-Core rule catalog."""
    return load_catalog()


@pytest.fixture
def ctx(catalog):
    """Build context over the embedded catalog."""
    return BuildContext(catalog=catalog)


@pytest.fixture
def adt_a01_raw():
    """Raw tokenizer output of an ADT^A01 admission."""
    return er7(ADT_A01_TEXT)


@pytest.fixture
def adt_a01_message(adt_a01_raw):
    """Parsed ADT^A01 admission."""
    return ParsedMessage.from_raw(adt_a01_raw)


@pytest.fixture
def siu_s12_raw():
    """Raw tokenizer output of an SIU^S12 booking."""
    return er7(SIU_S12_TEXT)


@pytest.fixture
def orm_o01_raw():
    """Raw tokenizer output of an ORM^O01 order."""
    return er7(ORM_O01_TEXT)


@pytest.fixture
def oru_r01_raw():
    """Raw tokenizer output of an ORU^R01 result."""
    return er7(ORU_R01_TEXT)


@pytest.fixture
def make_message():
    """Factory for parsed messages of any type and segments."""

    def _make(message_type: str, *lines: str, **msh_fields: str) -> ParsedMessage:
        text = "\r".join([msh(message_type, **msh_fields)] + list(lines))
        return ParsedMessage.from_raw(er7(text))

    return _make

