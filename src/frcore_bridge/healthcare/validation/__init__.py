"""FR-Core conformance validation."""

from frcore_bridge.healthcare.validation.frcore_validator import (
    FRCoreValidator,
    ValidationIssue,
    ValidationResult,
    ValidationSeverity,
    ValidationType,
    validate,
)

__all__ = [
    "FRCoreValidator",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationType",
    "validate",
]
