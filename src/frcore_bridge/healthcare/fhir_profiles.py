"""FR-Core profile rule catalog.

The catalog describes, per FHIR resource type, the canonical FR-Core profile
URL, the identifier slices bound to a coding system, the extensions that
must be carried and the ValueSet bindings of coded elements. It is loaded
once from ``frcore_definitions.json`` (or the file named by
``FRCORE_CATALOG_PATH``) and is read-only afterwards, so builders and the
validator can share it across threads.
"""

import copy
import json
import logging
from collections import Counter
from functools import lru_cache
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic import model_validator

from frcore_bridge.config import get_settings
from frcore_bridge.utils.exceptions import CatalogError

logger = logging.getLogger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "StructureDefinition"

DEFINITIONS_FILE = "frcore_definitions.json"


def _freeze_mapping(value: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(value))


class CatalogModel(BaseModel):
    """Base model for catalog entries: immutable, unknown keys rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class IdentifierSlice(CatalogModel):
    """A named identifier slice bound to a coding system."""

    name: str
    system: str
    type_system: str
    type_code: str
    use: str = "official"
    value_length: Optional[int] = Field(
        default=None, description="Exact length of the identifier value"
    )
    review: Optional[str] = Field(
        default=None, description="Note for a domain expert, e.g. a shared OID"
    )

    def type_coding(self) -> Dict[str, str]:
        """Coding placed in ``identifier.type``."""
        return {"system": self.type_system, "code": self.type_code}


class ExtensionDefinition(CatalogModel):
    """A known extension: URL and minimal value shape."""

    name: str
    url: str
    value_type: str
    value_set: Optional[str] = None


class ExtensionRequirement(CatalogModel):
    """Reference from a profile to an extension it expects."""

    name: str
    required: bool = False


class ValueSetBinding(CatalogModel):
    """A ValueSet: coding system and allowed codes with their display."""

    name: str
    system: str
    codes: Mapping[str, str]

    @field_validator("codes", mode="after")
    @classmethod
    def freeze_codes(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        """Codes cannot be changed once loaded."""
        return _freeze_mapping(v)

    def contains(self, code: Optional[str]) -> bool:
        """Whether the code belongs to the ValueSet."""
        return code is not None and code in self.codes

    def display(self, code: str) -> Optional[str]:
        """Display text of a code."""
        return self.codes.get(code)

    def coding(self, code: str) -> Dict[str, str]:
        """FHIR Coding for a member code."""
        coding = {"system": self.system, "code": code}
        display = self.display(code)
        if display:
            coding["display"] = display
        return coding


class ElementBinding(CatalogModel):
    """Binding of a resource element to a named ValueSet."""

    path: str
    value_set: str


class ProfileRule(CatalogModel):
    """Conformance rule for one resource type."""

    resource_type: str
    canonical: str
    slices: Tuple[IdentifierSlice, ...] = ()
    extensions: Tuple[ExtensionRequirement, ...] = ()
    bindings: Tuple[ElementBinding, ...] = ()
    address_parts: Tuple[str, ...] = Field(
        default=(), description="Elements every address of the resource must carry"
    )

    def slice(self, name: str) -> Optional[IdentifierSlice]:
        """Get an identifier slice by name (the identifier type code)."""
        for identifier_slice in self.slices:
            if identifier_slice.name == name:
                return identifier_slice
        return None

    def binding(self, path: str) -> Optional[str]:
        """ValueSet name bound to an element path."""
        for binding in self.bindings:
            if binding.path == path:
                return binding.value_set
        return None


class ProfileRuleCatalog(CatalogModel):
    """Process-wide FR-Core rule catalog."""

    version: str
    oids: Mapping[str, str]
    system_urls: Mapping[str, str]
    extensions: Tuple[ExtensionDefinition, ...]
    value_sets: Tuple[ValueSetBinding, ...]
    profiles: Tuple[ProfileRule, ...]

    @field_validator("oids", "system_urls", mode="after")
    @classmethod
    def freeze_maps(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        """Lookup tables cannot be changed once loaded."""
        return _freeze_mapping(v)

    @model_validator(mode="after")
    def check_references(self) -> "ProfileRuleCatalog":
        """Every extension and ValueSet referenced by name must be defined."""
        extension_names = {extension.name for extension in self.extensions}
        value_set_names = {value_set.name for value_set in self.value_sets}

        for extension in self.extensions:
            if extension.value_set and extension.value_set not in value_set_names:
                raise ValueError(
                    f"Extension {extension.name} binds unknown ValueSet "
                    f"{extension.value_set}"
                )
        for rule in self.profiles:
            for requirement in rule.extensions:
                if requirement.name not in extension_names:
                    raise ValueError(
                        f"Profile {rule.resource_type} requires unknown extension "
                        f"{requirement.name}"
                    )
            for binding in rule.bindings:
                if binding.value_set not in value_set_names:
                    raise ValueError(
                        f"Profile {rule.resource_type} binds unknown ValueSet "
                        f"{binding.value_set}"
                    )
        return self

    def rule(self, resource_type: str) -> Optional[ProfileRule]:
        """Get the rule for a resource type."""
        for rule in self.profiles:
            if rule.resource_type == resource_type:
                return rule
        return None

    def profile_url(self, resource_type: str) -> Optional[str]:
        """Canonical FR-Core profile URL of a resource type."""
        rule = self.rule(resource_type)
        return rule.canonical if rule else None

    def slice(self, resource_type: str, name: str) -> Optional[IdentifierSlice]:
        """Identifier slice of a resource type."""
        rule = self.rule(resource_type)
        return rule.slice(name) if rule else None

    def extension(self, name: str) -> Optional[ExtensionDefinition]:
        """Extension definition by name."""
        for extension in self.extensions:
            if extension.name == name:
                return extension
        return None

    def extension_url(self, name: str) -> str:
        """URL of a known extension, raising CatalogError if undefined."""
        extension = self.extension(name)
        if extension is None:
            raise CatalogError(f"Extension {name} is not defined in the catalog")
        return extension.url

    def value_set(self, name: str) -> Optional[ValueSetBinding]:
        """ValueSet by name."""
        for value_set in self.value_sets:
            if value_set.name == name:
                return value_set
        return None

    def oid(self, name: str) -> Optional[str]:
        """Raw OID by name, e.g. ``patientInternal``."""
        return self.oids.get(name)

    def system_url(self, code_type: str) -> Optional[str]:
        """Identifier system URL for an identifier type code, e.g. ``PI``."""
        return self.system_urls.get(code_type)

    def is_known_system(self, system: Optional[str]) -> bool:
        """Whether a coding or identifier system is declared anywhere."""
        if not system:
            return False
        if system in self.system_urls.values():
            return True
        if any(value_set.system == system for value_set in self.value_sets):
            return True
        return any(
            identifier_slice.system == system
            for rule in self.profiles
            for identifier_slice in rule.slices
        )

    def shared_slice_systems(self) -> Dict[str, List[str]]:
        """Identifier systems bound by more than one slice.

        Returns:
            System mapped to the ``ResourceType.slice`` names sharing it
        """
        owners: Dict[str, List[str]] = {}
        for rule in self.profiles:
            for identifier_slice in rule.slices:
                owners.setdefault(identifier_slice.system, []).append(
                    f"{rule.resource_type}.{identifier_slice.name}"
                )
        return {system: names for system, names in owners.items() if len(names) > 1}

    def slices_for_review(self) -> Tuple[IdentifierSlice, ...]:
        """Slices carrying a review note."""
        return tuple(
            identifier_slice
            for rule in self.profiles
            for identifier_slice in rule.slices
            if identifier_slice.review
        )

    def info(self) -> Dict[str, Any]:
        """Catalog version and entry counts."""
        return {
            "version": self.version,
            "profiles": len(self.profiles),
            "slices": sum(len(rule.slices) for rule in self.profiles),
            "extensions": len(self.extensions),
            "value_sets": len(self.value_sets),
            "shared_systems": len(self.shared_slice_systems()),
        }

    def resource_types(self) -> FrozenSet[str]:
        """Resource types with a rule."""
        return frozenset(rule.resource_type for rule in self.profiles)

    def apply_profile(self, resource: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of a resource declaring its FR-Core profile.

        Declaring a profile twice has no effect.

        Args:
            resource: FHIR resource as a dictionary

        Returns:
            Copy of the resource with ``meta.profile`` completed
        """
        updated = copy.deepcopy(dict(resource))
        canonical = self.profile_url(str(updated.get("resourceType", "")))
        if canonical is None:
            return updated
        meta = updated.setdefault("meta", {})
        profiles = meta.setdefault("profile", [])
        if canonical not in profiles:
            profiles.append(canonical)
        return updated


def _read_definitions(path: Optional[str]) -> str:
    if path:
        return Path(path).read_text(encoding="utf-8")
    return (
        resources.files("frcore_bridge.healthcare")
        .joinpath(DEFINITIONS_FILE)
        .read_text(encoding="utf-8")
    )


def parse_catalog(data: Mapping[str, Any]) -> ProfileRuleCatalog:
    """Validate raw catalog data.

    Args:
        data: Decoded catalog JSON

    Returns:
        Frozen catalog

    Raises:
        CatalogError: If the data does not describe a valid catalog
    """
    try:
        catalog = ProfileRuleCatalog.model_validate(data)
    except ValidationError as e:
        raise CatalogError(f"Invalid FR-Core rule catalog: {e}") from e

    duplicates = [
        resource_type
        for resource_type, count in Counter(
            rule.resource_type for rule in catalog.profiles
        ).items()
        if count > 1
    ]
    if duplicates:
        raise CatalogError(
            f"Duplicate profile rules for: {', '.join(sorted(duplicates))}"
        )
    return catalog


@lru_cache()
def _load_catalog(path: Optional[str]) -> ProfileRuleCatalog:
    try:
        raw = _read_definitions(path)
    except OSError as e:
        raise CatalogError(f"Cannot read FR-Core rule catalog {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CatalogError(f"FR-Core rule catalog is not valid JSON: {e}") from e

    catalog = parse_catalog(data)
    shared = catalog.shared_slice_systems()
    logger.info(
        "Loaded FR-Core rule catalog %s (%d profiles)",
        catalog.version,
        len(catalog.profiles),
    )
    for system, owners in shared.items():
        logger.info("Identifier system %s shared by %s", system, ", ".join(owners))
    return catalog


def load_catalog(path: Optional[str] = None) -> ProfileRuleCatalog:
    """Load the FR-Core rule catalog once.

    Args:
        path: JSON file overriding the embedded definitions. Defaults to the
            ``FRCORE_CATALOG_PATH`` setting, then the packaged file.

    Returns:
        Shared immutable catalog

    Raises:
        CatalogError: If the definitions cannot be read or are invalid
    """
    return _load_catalog(path or get_settings().catalog_path)


def clear_catalog_cache() -> None:
    """Forget loaded catalogs (used when the override path changes)."""
    _load_catalog.cache_clear()
