"""FR-Core Conformance Validation.

This module checks a message Bundle against the FR-Core rule catalog:
declared profiles, identifier slices, required extensions and ValueSet
bindings. The Bundle is never modified, and no exception escapes
``validate``: malformed input yields an invalid result with an explanatory
error.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from frcore_bridge.healthcare.fhir.bundle import Bundle
from frcore_bridge.healthcare.fhir_profiles import ProfileRuleCatalog, load_catalog
from frcore_bridge.utils.exceptions import ValidationInputError
from frcore_bridge.utils.id_generator import generate_id, is_valid_id
from frcore_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "OperationOutcome"

BundleInput = Union[Bundle, Mapping[str, Any]]


class ValidationSeverity(Enum):
    """Conformance issue severity levels."""

    ERROR = "error"  # Content is not FR-Core conformant
    WARNING = "warning"  # Recommended but optional


class ValidationType(Enum):
    """Kinds of conformance check, as OperationOutcome issue types."""

    STRUCTURE = "structure"  # Bundle shape
    PROFILE = "invariant"  # Declared profile
    REQUIRED = "required"  # Mandatory element
    SLICE = "value"  # Identifier slice
    EXTENSION = "extension"  # Required extension
    VALUE_SET = "code-invalid"  # ValueSet membership
    INVALID = "invalid"  # Malformed content, e.g. a resource id
    PROCESSING = "processing"  # Validator failure


@dataclass(frozen=True)
class ValidationIssue:
    """One conformance finding."""

    severity: ValidationSeverity
    validation_type: ValidationType
    location: str
    message: str

    def to_operation_outcome_issue(self) -> Dict[str, Any]:
        """Convert to FHIR OperationOutcome issue.

        Returns:
            OperationOutcome issue component
        """
        return {
            "severity": self.severity.value,
            "code": self.validation_type.value,
            "diagnostics": self.message,
            "location": [self.location],
            "details": {"text": self.message},
        }


@dataclass
class ValidationResult:
    """Outcome of a Bundle validation."""

    issues: List[ValidationIssue] = field(default_factory=list)
    resources_seen: int = 0
    resources_validated: int = 0

    @property
    def errors(self) -> List[str]:
        """Hard conformance failures, in order."""
        return [
            issue.message
            for issue in self.issues
            if issue.severity is ValidationSeverity.ERROR
        ]

    @property
    def warnings(self) -> List[str]:
        """Recommended-but-optional deviations, in order."""
        return [
            issue.message
            for issue in self.issues
            if issue.severity is ValidationSeverity.WARNING
        ]

    @property
    def valid(self) -> bool:
        """Whether no error was found."""
        return not self.errors

    def add_error(
        self, validation_type: ValidationType, location: str, message: str
    ) -> None:
        """Record an error."""
        self.issues.append(
            ValidationIssue(ValidationSeverity.ERROR, validation_type, location, message)
        )

    def add_warning(
        self, validation_type: ValidationType, location: str, message: str
    ) -> None:
        """Record a warning."""
        self.issues.append(
            ValidationIssue(
                ValidationSeverity.WARNING, validation_type, location, message
            )
        )

    def summary(self) -> Dict[str, Any]:
        """Counts of the validation."""
        return {
            "valid": self.valid,
            "resources_seen": self.resources_seen,
            "resources_validated": self.resources_validated,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Result in the ``valid``/``errors``/``warnings`` form."""
        return {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": self.summary(),
        }

    def to_operation_outcome(self) -> Dict[str, Any]:
        """Render the findings as a FHIR OperationOutcome."""
        issues = [issue.to_operation_outcome_issue() for issue in self.issues]
        if not issues:
            issues = [
                {
                    "severity": "information",
                    "code": "informational",
                    "diagnostics": "Bundle conforms to FR-Core",
                }
            ]
        return {
            "resourceType": "OperationOutcome",
            "id": f"validation-{generate_id()[:8]}",
            "issue": issues,
        }


def _profiles(resource: Mapping[str, Any]) -> List[str]:
    meta = resource.get("meta")
    if not isinstance(meta, Mapping):
        return []
    profiles = meta.get("profile")
    return list(profiles) if isinstance(profiles, list) else []


def _codings(concept: Any) -> List[Mapping[str, Any]]:
    if not isinstance(concept, Mapping):
        return []
    codings = concept.get("coding")
    if not isinstance(codings, list):
        return []
    return [coding for coding in codings if isinstance(coding, Mapping)]


def _first_code(concept: Any) -> Optional[str]:
    for coding in _codings(concept):
        if coding.get("code"):
            return str(coding["code"])
    return None


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


class FRCoreValidator:
    """Validator for FR-Core message Bundles."""

    def __init__(self, catalog: ProfileRuleCatalog):
        """Initialize validator.

        Args:
            catalog: Rule catalog
        """
        self.catalog = catalog
        self._checkers: Dict[
            str, Callable[[Mapping[str, Any], str, ValidationResult], None]
        ] = {
            "Patient": self._check_patient,
            "Encounter": self._check_encounter,
            "Practitioner": self._check_practitioner,
            "RelatedPerson": self._check_related_person,
            "Coverage": self._check_coverage,
            "Location": self._check_location,
            "Organization": self._check_organization,
            "PractitionerRole": self._check_practitioner_role,
        }

    def validate(self, bundle: BundleInput) -> ValidationResult:
        """Validate a Bundle.

        Args:
            bundle: Bundle model or FHIR JSON dictionary

        Returns:
            Validation result, invalid when errors were found
        """
        result = ValidationResult()
        try:
            entries = self._entries(bundle)
            result.resources_seen = len(entries)
            for index, entry in enumerate(entries):
                self._check_entry(index, entry, result)
        except ValidationInputError as e:
            result.add_error(ValidationType.STRUCTURE, "Bundle", e.message)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("validation_failed", error_type=e.__class__.__name__, exc_info=True)
            result.add_error(
                ValidationType.PROCESSING, "Bundle", f"Validation error: {e}"
            )

        logger.info("validation_completed", **result.summary())
        return result

    def _entries(self, bundle: BundleInput) -> List[Any]:
        if isinstance(bundle, Bundle):
            data: Mapping[str, Any] = bundle.to_fhir()
        elif isinstance(bundle, Mapping):
            data = bundle
        else:
            raise ValidationInputError()

        if data.get("resourceType") != "Bundle":
            raise ValidationInputError()
        entries = data.get("entry")
        if not isinstance(entries, list) or not entries:
            raise ValidationInputError("Bundle has no entries")
        return entries

    def _check_entry(self, index: int, entry: Any, result: ValidationResult) -> None:
        location = f"Bundle.entry[{index}]"
        resource = entry.get("resource") if isinstance(entry, Mapping) else None
        if not isinstance(resource, Mapping):
            result.add_error(
                ValidationType.STRUCTURE, location, f"{location} has no resource"
            )
            return

        resource_type = str(resource.get("resourceType", ""))
        label = f"{resource_type}/{resource.get('id', index)}"

        resource_id = resource.get("id")
        if resource_id is not None and not is_valid_id(str(resource_id)):
            result.add_error(
                ValidationType.INVALID,
                f"{label}.id",
                f"{label} id is not a valid FHIR id ([A-Za-z0-9-.]{{1,64}})",
            )

        if index == 0:
            if resource_type == "MessageHeader":
                result.resources_validated += 1
                self._check_message_header(resource, label, result)
                return
            result.add_warning(
                ValidationType.STRUCTURE,
                location,
                "First entry of a message Bundle should be a MessageHeader",
            )

        checker = self._checkers.get(resource_type)
        if checker is None:
            return
        result.resources_validated += 1
        checker(resource, label, result)

    # Shared checks

    def _check_profile(
        self, resource: Mapping[str, Any], rule_name: str, label: str, result: ValidationResult
    ) -> None:
        canonical = self.catalog.profile_url(rule_name)
        if canonical and canonical not in _profiles(resource):
            result.add_error(
                ValidationType.PROFILE,
                f"{label}.meta.profile",
                f"{label} must declare profile {canonical}",
            )

    def _check_slices(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> Set[str]:
        """Check sliced identifiers and return the slice names found."""
        rule = self.catalog.rule(str(resource.get("resourceType", "")))
        found: Set[str] = set()
        if rule is None:
            return found

        for position, identifier in enumerate(_as_list(resource.get("identifier"))):
            if not isinstance(identifier, Mapping):
                continue
            location = f"{label}.identifier[{position}]"
            for coding in _codings(identifier.get("type")):
                identifier_slice = rule.slice(str(coding.get("code", "")))
                if identifier_slice is None:
                    continue
                found.add(identifier_slice.name)
                system = identifier.get("system")
                if system != identifier_slice.system:
                    result.add_error(
                        ValidationType.SLICE,
                        location,
                        f"{label} identifier slice {identifier_slice.name} must use "
                        f"system {identifier_slice.system}, found {system}",
                    )
                use = identifier.get("use")
                if use and use != identifier_slice.use:
                    result.add_warning(
                        ValidationType.SLICE,
                        location,
                        f"{label} identifier slice {identifier_slice.name} should "
                        f"have use {identifier_slice.use}, found {use}",
                    )
                value = identifier.get("value")
                expected_length = identifier_slice.value_length
                if expected_length and value and len(str(value)) != expected_length:
                    result.add_error(
                        ValidationType.SLICE,
                        location,
                        f"{label} identifier slice {identifier_slice.name} value "
                        f"must have {expected_length} characters",
                    )
        return found

    def _check_extensions(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        rule = self.catalog.rule(str(resource.get("resourceType", "")))
        if rule is None:
            return
        extensions = [
            extension
            for extension in _as_list(resource.get("extension"))
            if isinstance(extension, Mapping)
        ]
        for requirement in rule.extensions:
            definition = self.catalog.extension(requirement.name)
            if definition is None:
                continue
            add = result.add_error if requirement.required else result.add_warning
            present = [ext for ext in extensions if ext.get("url") == definition.url]
            if not present:
                add(
                    ValidationType.EXTENSION,
                    f"{label}.extension",
                    f"{label} is missing extension {definition.url}",
                )
                continue
            if not definition.value_set:
                continue
            value_set = self.catalog.value_set(definition.value_set)
            code = _first_code(present[0].get(definition.value_type))
            if value_set is not None and not value_set.contains(code):
                add(
                    ValidationType.VALUE_SET,
                    f"{label}.extension",
                    f"{label} extension {definition.url} has code {code} outside "
                    f"{value_set.system}",
                )

    def _check_binding(
        self,
        rule_name: str,
        path: str,
        code: Optional[str],
        label: str,
        result: ValidationResult,
        strict: bool = False,
    ) -> None:
        """Report a bound code outside its ValueSet, as an error when strict."""
        rule = self.catalog.rule(rule_name)
        value_set_name = rule.binding(path) if rule else None
        value_set = self.catalog.value_set(value_set_name) if value_set_name else None
        if value_set is None or code is None:
            return
        if not value_set.contains(code):
            add = result.add_error if strict else result.add_warning
            add(
                ValidationType.VALUE_SET,
                f"{label}.{path}",
                f"{label} {path} code {code} is not in {value_set.system}",
            )

    def _check_addresses(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        rule = self.catalog.rule(str(resource.get("resourceType", "")))
        if rule is None or not rule.address_parts:
            return
        for position, address in enumerate(_as_list(resource.get("address"))):
            if not isinstance(address, Mapping):
                continue
            location = f"{label}.address[{position}]"
            missing = [part for part in rule.address_parts if not address.get(part)]
            if missing:
                result.add_error(
                    ValidationType.REQUIRED,
                    location,
                    f"{label} address is incomplete, missing {', '.join(missing)}",
                )
            if address.get("postalCode") == "":
                result.add_error(
                    ValidationType.REQUIRED,
                    f"{location}.postalCode",
                    f"{label} address postalCode must not be empty",
                )

    # Per resource type checks

    def _check_message_header(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        canonical = self.catalog.profile_url("MessageHeader")
        if canonical and canonical not in _profiles(resource):
            result.add_warning(
                ValidationType.PROFILE,
                f"{label}.meta.profile",
                f"{label} should declare profile {canonical}",
            )
        if not resource.get("eventCoding") and not resource.get("eventUri"):
            result.add_error(
                ValidationType.REQUIRED, f"{label}.event", f"{label} has no event"
            )
        if not resource.get("destination"):
            result.add_error(
                ValidationType.REQUIRED,
                f"{label}.destination",
                f"{label} has no destination",
            )
        if not resource.get("source"):
            result.add_error(
                ValidationType.REQUIRED, f"{label}.source", f"{label} has no source"
            )

    def _check_patient(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "Patient", label, result)
        slices = self._check_slices(resource, label, result)

        if "INS-NIR" in slices:
            canonical = self.catalog.profile_url("PatientINS")
            if canonical and canonical not in _profiles(resource):
                result.add_warning(
                    ValidationType.PROFILE,
                    f"{label}.meta.profile",
                    f"{label} carries an INS-NIR and should declare profile {canonical}",
                )
        if "PI" not in slices:
            result.add_warning(
                ValidationType.SLICE,
                f"{label}.identifier",
                f"{label} should have a PI identifier",
            )

        self._check_extensions(resource, label, result)
        gender = resource.get("gender")
        self._check_binding(
            "Patient", "gender", str(gender) if gender else None, label, result
        )
        for telecom in _as_list(resource.get("telecom")):
            system = telecom.get("system") if isinstance(telecom, Mapping) else None
            self._check_binding(
                "Patient",
                "telecom.system",
                str(system) if system else None,
                label,
                result,
                strict=True,
            )
        self._check_addresses(resource, label, result)

    def _check_encounter(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "Encounter", label, result)
        self._check_slices(resource, label, result)
        self._check_extensions(resource, label, result)

        encounter_class = resource.get("class")
        class_code = (
            str(encounter_class.get("code"))
            if isinstance(encounter_class, Mapping) and encounter_class.get("code")
            else None
        )
        self._check_binding("Encounter", "class", class_code, label, result)

        hospitalization = resource.get("hospitalization")
        if class_code == "IMP" and not hospitalization:
            result.add_warning(
                ValidationType.REQUIRED,
                f"{label}.hospitalization",
                f"{label} is an inpatient encounter without hospitalization",
            )
        if isinstance(hospitalization, Mapping):
            for element in ("origin", "destination"):
                self._check_binding(
                    "Encounter",
                    "hospitalization",
                    _first_code(hospitalization.get(element)),
                    label,
                    result,
                )

    def _check_practitioner(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "Practitioner", label, result)
        slices = self._check_slices(resource, label, result)
        if not slices & {"IDNPS", "RPPS"}:
            result.add_warning(
                ValidationType.SLICE,
                f"{label}.identifier",
                f"{label} should have an IDNPS or RPPS identifier",
            )

    def _check_practitioner_role(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        rule = self.catalog.rule("PractitionerRole")
        value_set_name = rule.binding("code") if rule else None
        value_set = self.catalog.value_set(value_set_name) if value_set_name else None
        codes = _as_list(resource.get("code"))
        if value_set is None or not codes:
            return
        systems = {
            coding.get("system") for concept in codes for coding in _codings(concept)
        }
        if value_set.system not in systems:
            result.add_error(
                ValidationType.VALUE_SET,
                f"{label}.code",
                f"{label} code must use system {value_set.system}",
            )

    def _check_related_person(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "RelatedPerson", label, result)

        relationships = _as_list(resource.get("relationship"))
        if not relationships:
            result.add_error(
                ValidationType.REQUIRED,
                f"{label}.relationship",
                f"{label} has no relationship",
            )
        for relationship in relationships:
            self._check_binding(
                "RelatedPerson", "relationship", _first_code(relationship), label, result
            )

        for element in ("telecom", "address"):
            if not resource.get(element):
                result.add_error(
                    ValidationType.REQUIRED,
                    f"{label}.{element}",
                    f"{label} has no {element}",
                )

    def _check_coverage(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "Coverage", label, result)

        if not resource.get("payor"):
            result.add_error(
                ValidationType.REQUIRED, f"{label}.payor", f"{label} has no payor"
            )
        if not resource.get("beneficiary"):
            result.add_error(
                ValidationType.REQUIRED,
                f"{label}.beneficiary",
                f"{label} has no beneficiary",
            )
        self._check_binding(
            "Coverage", "type", _first_code(resource.get("type")), label, result
        )

        insured = self.catalog.extension("coverageInsuredId")
        expected_system = self.catalog.system_url("INS-NIR")
        for extension in _as_list(resource.get("extension")):
            if not isinstance(extension, Mapping) or insured is None:
                continue
            if extension.get("url") != insured.url:
                continue
            value = extension.get("valueIdentifier")
            system = value.get("system") if isinstance(value, Mapping) else None
            if system != expected_system:
                result.add_warning(
                    ValidationType.SLICE,
                    f"{label}.extension",
                    f"{label} insured id should use system {expected_system}, "
                    f"found {system}",
                )

    def _check_location(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "Location", label, result)
        if not resource.get("status"):
            result.add_error(
                ValidationType.REQUIRED, f"{label}.status", f"{label} has no status"
            )

    def _check_organization(
        self, resource: Mapping[str, Any], label: str, result: ValidationResult
    ) -> None:
        self._check_profile(resource, "Organization", label, result)
        if resource.get("active") is None:
            result.add_warning(
                ValidationType.REQUIRED,
                f"{label}.active",
                f"{label} should state whether it is active",
            )


def validate(
    bundle: BundleInput, catalog: Optional[ProfileRuleCatalog] = None
) -> ValidationResult:
    """Validate a Bundle against FR-Core.

    Never raises.

    Args:
        bundle: Bundle model or FHIR JSON dictionary
        catalog: Rule catalog, defaults to the loaded catalog

    Returns:
        Validation result
    """
    if catalog is None:
        try:
            catalog = load_catalog()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("validation_failed", step="catalog", exc_info=True)
            result = ValidationResult()
            result.add_error(
                ValidationType.PROCESSING,
                "Bundle",
                f"FR-Core rule catalog unavailable: {e}",
            )
            return result
    return FRCoreValidator(catalog).validate(bundle)
