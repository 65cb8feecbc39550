"""Test the FR-Core Patient builder."""

import pytest

from frcore_bridge.healthcare.builders import build_patient
from frcore_bridge.healthcare.builders.patient import map_gender
from frcore_bridge.healthcare.hl7.hl7_message import Segment
from frcore_bridge.utils.exceptions import SegmentShapeError

PI_SYSTEM = "urn:oid:1.2.250.1.71.4.2.7"
INS_SYSTEM = "urn:oid:1.2.250.1.213.1.4.8"
PATIENT_PROFILE = "https://hl7.fr/ig/fhir/core/StructureDefinition/fr-core-patient"
PATIENT_INS_PROFILE = (
    "https://hl7.fr/ig/fhir/core/StructureDefinition/fr-core-patient-ins"
)


def pid(**fields):
    """PID segment with the given fields (keyword ``f<n>`` is PID-n)."""
    numbered = {int(key.lstrip("f")): value for key, value in fields.items()}
    last = max(numbered) if numbered else 1
    return Segment.from_raw(
        ["PID"] + [numbered.get(number, "") for number in range(1, last + 1)]
    )


def extension(patient, url_suffix):
    """First extension whose URL ends with the suffix."""
    for item in patient.extension or []:
        if item["url"].endswith(url_suffix):
            return item
    return None


class TestIdentifiers:
    """Test PID-3 slicing."""

    def test_internal_identifier(self, ctx):
        """Test that an identifier with an assigning authority is a PI."""
        patient = build_patient(pid(f3="12345^^^HOSPITAL^MR"), None, ctx)
        assert len(patient.identifier) == 1
        identifier = patient.identifier[0]
        assert identifier["system"] == PI_SYSTEM
        assert identifier["value"] == "12345"
        assert identifier["use"] == "usual"
        assert identifier["type"]["coding"][0]["code"] == "PI"
        assert identifier["assigner"] == {"display": "HOSPITAL"}
        assert patient.profiles == [PATIENT_PROFILE]

    def test_national_identifier(self, ctx):
        """Test that a 15 digit identifier is an INS-NIR."""
        patient = build_patient(pid(f3="123456789012345"), None, ctx)
        assert len(patient.identifier) == 1
        identifier = patient.identifier[0]
        assert identifier["system"] == INS_SYSTEM
        assert identifier["use"] == "official"
        assert identifier["type"]["coding"][0]["code"] == "INS-NIR"
        assert patient.profiles == [PATIENT_PROFILE, PATIENT_INS_PROFILE]

    def test_internal_before_national(self, ctx):
        """Test that PI identifiers come before INS-NIR identifiers."""
        segment = pid(f3=["123456789012345", "12345^^^HOSPITAL^MR"])
        patient = build_patient(segment, None, ctx)
        assert [item["system"] for item in patient.identifier] == [
            PI_SYSTEM,
            INS_SYSTEM,
        ]

    def test_national_identifier_with_authority(self, ctx):
        """Test that a 15 digit PI is also emitted as an INS-NIR."""
        patient = build_patient(
            pid(f3="123456789012345^^^ASIP-SANTE-INS-NIR^INS"), None, ctx
        )
        codes = [item["type"]["coding"][0]["code"] for item in patient.identifier]
        assert codes == ["PI", "INS-NIR"]
        assert patient.identifier[0]["assigner"] == {"display": "ASIP-SANTE-INS-NIR"}
        assert patient.identifier[1]["value"] == "123456789012345"
        assert patient.profiles == [PATIENT_PROFILE, PATIENT_INS_PROFILE]

    def test_component_array_identifier(self, ctx):
        """Test a PID-3 repetition sent as a component array."""
        segment = pid(f3=[["12345", "", "", "HOSPITAL", "MR"]])
        patient = build_patient(segment, None, ctx)
        assert patient.identifier[0]["value"] == "12345"

    def test_identifier_without_authority_is_dropped(self, ctx):
        """Test that a bare short identifier is not sliced."""
        patient = build_patient(pid(f3="12345"), None, ctx)
        assert patient.identifier is None

    def test_empty_assigner_defaults(self, ctx):
        """Test the assigner display fallback."""
        patient = build_patient(pid(f3="12345^^^^MR"), None, ctx)
        assert patient.identifier[0]["assigner"] == {"display": "Établissement"}

    def test_malformed_identifier_raises(self, ctx):
        """Test that a nested repetition is reported to the caller."""
        with pytest.raises(SegmentShapeError):
            build_patient(pid(f3=[[["a", "b"], ["c"]]]), None, ctx)


class TestDemographics:
    """Test names, gender, contact and extensions."""

    @pytest.mark.parametrize(
        "value, expected",
        [("M", "male"), ("F", "female"), ("f", "female"), ("X", "unknown"), ("", "unknown")],
    )
    def test_gender(self, value, expected):
        """Test administrative sex mapping."""
        assert map_gender(value) == expected

    def test_gender_on_resource(self, ctx):
        """Test that an absent PID-8 still yields a gender."""
        assert build_patient(pid(f1="1"), None, ctx).gender == "unknown"

    def test_name_given_names_deduplicated(self, ctx):
        """Test that repeated given names are kept once, in order."""
        patient = build_patient(pid(f5="DUPONT^JEAN^PIERRE^JEAN"), None, ctx)
        name = patient.name[0]
        assert name["use"] == "official"
        assert name["family"] == "DUPONT"
        assert name["given"] == ["JEAN", "PIERRE"]
        assert name["extension"][0]["valueString"] == "JEAN PIERRE"
        assert name["extension"][0]["url"].endswith(
            "fr-core-patient-birth-list-given-name"
        )

    def test_birth_date(self, ctx):
        """Test that PID-7 is converted to an ISO date."""
        assert build_patient(pid(f7="19800115"), None, ctx).birthDate == "1980-01-15"

    def test_telecom(self, ctx):
        """Test home phone and work e-mail."""
        patient = build_patient(
            pid(f13="0102030405", f14="jean.dupont@example.fr"), None, ctx
        )
        assert patient.telecom == [
            {"system": "phone", "value": "0102030405", "use": "home"},
            {"system": "email", "value": "jean.dupont@example.fr", "use": "work"},
        ]

    def test_address_defaults(self, ctx):
        """Test that missing address parts are filled."""
        patient = build_patient(pid(f11="12 RUE DE LA PAIX"), None, ctx)
        assert patient.address == [
            {
                "line": ["12 RUE DE LA PAIX"],
                "city": "UNK",
                "postalCode": "UNK",
                "country": "FRA",
                "use": "home",
            }
        ]

    @pytest.mark.parametrize("value, expected", [("VALI", "VALI"), ("", "UNDI"), ("PROV", "UNDI")])
    def test_identity_reliability(self, ctx, value, expected):
        """Test that only PID-35 VALI marks a validated identity."""
        patient = build_patient(pid(f1="1", f35=value), None, ctx)
        reliability = extension(patient, "fr-core-identity-reliability")
        assert reliability["valueCodeableConcept"]["coding"][0]["code"] == expected

    def test_birth_place_from_pid23(self, ctx):
        """Test the birth place extension."""
        patient = build_patient(pid(f23="LYON"), None, ctx)
        assert extension(patient, "patient-birthPlace")["valueAddress"] == {
            "city": "LYON"
        }

    def test_birth_place_from_address(self, ctx):
        """Test the birth place fallback on the home address."""
        patient = build_patient(pid(f11="1 RUE^^PARIS^^75001^FRA"), None, ctx)
        assert extension(patient, "patient-birthPlace")["valueAddress"] == {
            "city": "PARIS",
            "postalCode": "75001",
            "country": "FRA",
        }

    def test_no_birth_place(self, ctx):
        """Test that no birth place data yields no extension."""
        patient = build_patient(pid(f1="1"), None, ctx)
        assert extension(patient, "patient-birthPlace") is None


class TestGeneralPractitioner:
    """Test PD1-4."""

    def test_general_practitioner(self, ctx):
        """Test the reference to the primary care provider."""
        pd1 = Segment.from_raw(["PD1", "", "", "", "10003456789^MARTIN^CLAIRE"])
        patient = build_patient(pid(f1="1"), pd1, ctx)
        assert patient.generalPractitioner == [
            {"reference": "Practitioner/practitioner-10003456789"}
        ]

    def test_without_pd1(self, ctx):
        """Test that no PD1 means no general practitioner."""
        assert build_patient(pid(f1="1"), None, ctx).generalPractitioner is None
