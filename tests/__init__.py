"""FR-Core HL7 bridge test suite."""
