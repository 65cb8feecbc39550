"""HL7 v2 message model, message types and family handlers."""
