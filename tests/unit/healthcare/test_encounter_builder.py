"""Test the Encounter, Location, Practitioner and MessageHeader builders."""

import pytest

from frcore_bridge.healthcare.builders import (
    build_encounter,
    build_location,
    build_message_header,
    build_practitioners,
)
from frcore_bridge.healthcare.builders.encounter import map_patient_class
from frcore_bridge.healthcare.hl7.hl7_message import Segment
from frcore_bridge.healthcare.hl7.hl7_message_types import UNKNOWN, MessageType

VN_SYSTEM = "urn:oid:1.2.250.1.71.4.2.7"
IDNPS_SYSTEM = "urn:oid:1.2.250.1.71.4.2.1"


def segment(code, **fields):
    """Segment with the given fields (keyword ``f<n>`` is field n)."""
    numbered = {int(key.lstrip("f")): value for key, value in fields.items()}
    last = max(numbered) if numbered else 1
    return Segment.from_raw(
        [code] + [numbered.get(number, "") for number in range(1, last + 1)]
    )


@pytest.fixture
def pv1():
    """Inpatient PV1 with a doctor in two roles."""
    return segment(
        "PV1",
        f2="I",
        f3="CARDIO^101^A",
        f5="PRE123",
        f7="10001234567^MARTIN^PAUL",
        f8="10007654321^DURAND^SOPHIE",
        f17="10001234567^MARTIN^PAUL",
        f19="VN2025001",
        f44="20250618100000",
    )


class TestEncounter:
    """Test Encounter building."""

    @pytest.mark.parametrize(
        "value, expected", [("I", "IMP"), ("E", "EMER"), ("O", "AMB"), ("", "AMB")]
    )
    def test_patient_class(self, value, expected):
        """Test PV1-2 mapping."""
        assert map_patient_class(value) == expected

    def test_inpatient_encounter(self, pv1, ctx):
        """Test an inpatient encounter."""
        encounter = build_encounter(pv1, None, ctx, "Patient/abc")
        data = encounter.to_fhir()
        assert data["class"]["code"] == "IMP"
        assert data["subject"] == {"reference": "Patient/abc"}
        assert data["period"] == {"start": "2025-06-18T10:00:00+02:00"}
        assert data["identifier"][0]["system"] == VN_SYSTEM
        assert data["identifier"][0]["value"] == "VN2025001"
        assert data["identifier"][0]["type"]["coding"][0]["code"] == "VN"
        assert data["meta"]["profile"] == [
            "https://hl7.fr/ig/fhir/core/StructureDefinition/fr-core-encounter"
        ]

    def test_hospitalization(self, pv1, ctx):
        """Test the hospitalization block of an inpatient encounter."""
        hospitalization = build_encounter(pv1, None, ctx).hospitalization
        assert hospitalization["origin"]["coding"][0]["code"] == "01"
        assert hospitalization["destination"]["coding"][0]["code"] == "02"
        assert hospitalization["preAdmissionIdentifier"] == {
            "system": VN_SYSTEM,
            "value": "PRE123",
        }
        assert hospitalization["extension"][0]["valueDateTime"] == (
            "2025-06-19T10:00:00+02:00"
        )

    def test_ambulatory_has_no_hospitalization(self, ctx):
        """Test that only inpatient encounters carry hospitalization."""
        encounter = build_encounter(segment("PV1", f2="O"), None, ctx)
        assert encounter.hospitalization is None
        assert encounter.class_["code"] == "AMB"

    def test_start_falls_back_on_evn(self, ctx):
        """Test EVN-2 as the start when PV1-44 is absent."""
        evn = segment("EVN", f1="A01", f2="20250618115500")
        encounter = build_encounter(segment("PV1", f2="E"), evn, ctx)
        assert encounter.period == {"start": "2025-06-18T11:55:00+02:00"}

    def test_placeholder_subject(self, ctx):
        """Test the subject when no Patient was converted."""
        encounter = build_encounter(segment("PV1", f2="O"), None, ctx)
        assert encounter.subject["reference"].startswith("Patient/")

    def test_mode_prise_en_charge(self, pv1, ctx):
        """Test the care mode extension."""
        extension = build_encounter(pv1, None, ctx).extension[0]
        assert extension["url"].endswith("fr-core-mode-prise-en-charge")
        assert extension["valueCodeableConcept"]["coding"][0]["code"] == "IMP"


class TestLocation:
    """Test Location building."""

    def test_location(self, pv1, ctx):
        """Test the Location named by PV1-3."""
        location = build_location(pv1, ctx)
        assert location.name == "CARDIO^101^A"
        assert location.status == "active"
        assert location.identifier[0]["value"] == "CARDIO^101^A"

    def test_no_location(self, ctx):
        """Test that an absent PV1-3 yields no Location."""
        assert build_location(segment("PV1", f2="I"), ctx) is None


class TestPractitioners:
    """Test PV1 doctors."""

    def test_practitioners_deduplicated(self, pv1, ctx):
        """Test that a doctor in several roles yields one Practitioner."""
        practitioners = build_practitioners(pv1, ctx)
        assert [item.id for item in practitioners] == [
            "practitioner-10001234567",
            "practitioner-10007654321",
        ]

    def test_practitioner_content(self, pv1, ctx):
        """Test identifier and name."""
        practitioner = build_practitioners(pv1, ctx)[0]
        assert practitioner.identifier[0]["system"] == IDNPS_SYSTEM
        assert practitioner.identifier[0]["value"] == "10001234567"
        assert practitioner.name == [
            {"family": "MARTIN", "given": ["PAUL"], "text": "PAUL MARTIN", "use": "official"}
        ]

    def test_component_array_doctor(self, ctx):
        """Test a PV1 doctor sent as a flat component array."""
        pv1 = segment("PV1", f2="I", f7=["10001234567", "MARTIN", "PAUL"])
        practitioner = build_practitioners(pv1, ctx)[0]
        assert practitioner.id == "practitioner-10001234567"
        assert practitioner.name[0]["family"] == "MARTIN"
        assert practitioner.name[0]["given"] == ["PAUL"]

    def test_identifier_outside_id_alphabet(self, ctx):
        """Test that the resource id stays a valid, stable FHIR id."""
        pv1 = segment("PV1", f2="I", f7="ABC 123/45^MARTIN", f8="ABC 123/45^MARTIN")
        practitioners = build_practitioners(pv1, ctx)
        assert [item.id for item in practitioners] == ["practitioner-ABC-123-45"]
        assert practitioners[0].identifier[0]["value"] == "ABC 123/45"

    def test_long_identifier_is_cut(self, ctx):
        """Test that ids never exceed 64 characters."""
        practitioner = build_practitioners(segment("PV1", f7="9" * 80), ctx)[0]
        assert practitioner.id == ("practitioner-" + "9" * 80)[:64]

    def test_no_doctors(self, ctx):
        """Test a PV1 without doctors."""
        assert build_practitioners(segment("PV1", f2="I"), ctx) == []


class TestMessageHeader:
    """Test MessageHeader building."""

    def test_from_msh(self, adt_a01_message, ctx):
        """Test endpoints, sender and timestamp from MSH."""
        header = build_message_header(
            adt_a01_message.first("MSH"),
            adt_a01_message.first("EVN"),
            MessageType("ADT", "A01"),
            ctx,
        )
        assert header.eventUri == "https://hl7.fr/ig/fhir/core/message/event/A01"
        assert header.destination == [
            {"name": "RECEIVING_APP", "endpoint": "urn:oid:1.2.250.1.213.1.4.9"}
        ]
        assert header.source == {
            "name": "SENDING_APP",
            "endpoint": "urn:oid:1.2.250.1.211.10.200.2",
        }
        assert header.sender == {"display": "SENDING_APP"}
        assert header.timestamp == "2025-06-18T12:00:00+02:00"

    def test_defaults(self, ctx):
        """Test catalog endpoints when MSH is absent."""
        header = build_message_header(None, None, UNKNOWN, ctx)
        assert header.destination[0]["endpoint"] == "urn:oid:1.2.250.1.213.1.4.8"
        assert header.source["endpoint"] == "urn:oid:1.2.250.1.211.10.200.1"
        assert header.eventUri.endswith("/message/event/UNKNOWN")
        assert header.timestamp.endswith("+02:00")

    def test_timestamp_falls_back_on_evn(self, make_message, ctx):
        """Test EVN-2 when MSH-7 is absent."""
        message = make_message(
            "ADT^A01", "EVN|A01|20250618115500", f7=""
        )
        header = build_message_header(
            message.first("MSH"), message.first("EVN"), MessageType("ADT", "A01"), ctx
        )
        assert header.timestamp == "2025-06-18T11:55:00+02:00"
