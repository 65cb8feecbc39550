"""FHIR resource models and message Bundle assembly."""

from frcore_bridge.healthcare.fhir.bundle import (
    Bundle,
    BundleAssembler,
    BundleEntry,
    operation_outcome_for,
)
from frcore_bridge.healthcare.fhir.resources import Completeness, Resource

__all__ = [
    "Bundle",
    "BundleAssembler",
    "BundleEntry",
    "Completeness",
    "Resource",
    "operation_outcome_for",
]
