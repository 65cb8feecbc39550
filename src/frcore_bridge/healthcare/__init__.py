"""FR-Core healthcare conversion: HL7 v2 to FHIR R4 and conformance checks."""
