"""
Static consistency rules for schemaevo.

The analyzer's duplicate and alias checks depend only on the tables in
this module, never on external state, so analysis stays deterministic.
The standalone validators here back both the analyzer and the CLI
'validate' command.

How to change safely:
    - Tables are append-only in practice; removing an entry silently
      hides findings users may rely on
    - Validators return ValidationResult and never raise on user input
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..schema.types import FieldType

FIELD_NAME_PATTERN = re.compile(r"^[a-z][a-zA-Z0-9]*$")

# (deprecated, canonical) field names that describe the same concept
DEPRECATED_FIELD_PAIRS: tuple[tuple[str, str], ...] = (
    ("taxamt", "taxAmount"),
    ("taxrate", "taxRate"),
    ("varianttitle", "variantTitle"),
    ("createdat", "createdAt"),
    ("updatedat", "updatedAt"),
    ("billaddrs", "billingAddress"),
    ("shipaddrs", "shippingAddress"),
)

# Abbreviated names with a known canonical spelling
NAMING_FIXES: dict[str, str] = {
    "billaddrs": "billingAddress",
    "shipaddrs": "shippingAddress",
}

# Parent-like entities and the role fields that should be references
RELATIONSHIP_ROLES: dict[str, tuple[str, ...]] = {
    "products": ("brand", "category", "type", "vendor"),
}

# Entity each relationship role points to
ROLE_ENTITIES: dict[str, str] = {
    "brand": "brands",
    "category": "categories",
    "type": "types",
    "vendor": "vendors",
}

# (deprecated, canonical) entity names that model the same concept
DUPLICATE_ENTITY_ALIASES: tuple[tuple[str, str], ...] = (
    ("stores", "store"),
)

# Entities a relationship may point to when no snapshot is at hand
COMMON_ENTITIES: tuple[str, ...] = (
    "products",
    "orders",
    "customers",
    "items",
    "locations",
    "brands",
    "categories",
    "types",
    "vendors",
)

_MONETARY_MARKERS = ("price", "cost", "amount", "total")
_ADDRESS_MARKERS = ("address", "addrs")


@dataclass(frozen=True)
class AnalyzerRules:
    """Bundle of rule tables used by the consistency analyzer."""

    deprecated_field_pairs: tuple[tuple[str, str], ...] = DEPRECATED_FIELD_PAIRS
    naming_fixes: Mapping[str, str] = field(default_factory=lambda: dict(NAMING_FIXES))
    relationship_roles: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(RELATIONSHIP_ROLES)
    )
    role_entities: Mapping[str, str] = field(default_factory=lambda: dict(ROLE_ENTITIES))
    duplicate_entity_aliases: tuple[tuple[str, str], ...] = DUPLICATE_ENTITY_ALIASES

    def role_entity(self, role: str) -> str:
        return self.role_entities.get(role, f"{role}s")


DEFAULT_RULES = AnalyzerRules()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating user input; issues are human-readable."""

    is_valid: bool
    issues: tuple[str, ...] = ()

    @classmethod
    def from_issues(cls, issues: Iterable[str]) -> ValidationResult:
        issues = tuple(issues)
        return cls(is_valid=not issues, issues=issues)

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult.from_issues(self.issues + other.issues)

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "issues": list(self.issues)}


def has_lowercase_timestamp_suffix(name: str) -> bool:
    """Whether a name ends in "at" not preceded by a capital (createdat, updated_at)."""
    if len(name) <= 2 or not name.endswith("at"):
        return False
    return not name[-3].isupper()


def is_timestamp_name(name: str) -> bool:
    return name.endswith("At") or name.endswith("Date") or name.startswith("date")


def is_monetary_name(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _MONETARY_MARKERS)


def is_address_name(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _ADDRESS_MARKERS)


def to_camel_case(name: str) -> str:
    """Convert snake/kebab case to camelCase ("created_at" -> "createdAt")."""
    parts = [p for p in re.split(r"[_\-\s]+", name) if p]
    if not parts:
        return name
    head = parts[0][0].lower() + parts[0][1:]
    return head + "".join(p[0].upper() + p[1:] for p in parts[1:])


def suggest_field_name(name: str, naming_fixes: Mapping[str, str] = NAMING_FIXES) -> str:
    """Best-effort conventional spelling of a field name."""
    if name in naming_fixes:
        return naming_fixes[name]
    suggestion = to_camel_case(name)
    if has_lowercase_timestamp_suffix(suggestion):
        suggestion = suggestion[:-2] + "At"
    return suggestion


def validate_field_naming(name: str) -> ValidationResult:
    """Validate a field name against the camelCase conventions."""
    issues = []
    if not FIELD_NAME_PATTERN.match(name):
        issues.append("Field name should use camelCase convention")
    if "_" in name:
        issues.append("Field name should not contain underscores")
    if has_lowercase_timestamp_suffix(name):
        issues.append('Timestamp fields should end with "At" (e.g., createdAt)')
    return ValidationResult.from_issues(issues)


def validate_data_type(name: str, data_type: str) -> ValidationResult:
    """Validate that a declared type suits the field's name."""
    try:
        field_type = FieldType.from_str(data_type)
    except ValueError:
        valid = ", ".join(t.value for t in FieldType)
        return ValidationResult.from_issues(
            [f'Unknown data type "{data_type}" (expected one of: {valid})']
        )

    issues = []
    if field_type is FieldType.DYNAMIC:
        issues.append('Consider using "json" instead of "any" for structured data')
    if is_timestamp_name(name) and field_type is not FieldType.DATE:
        issues.append('Timestamp fields should use "date" type')
    if is_monetary_name(name) and field_type is not FieldType.NUMBER:
        issues.append('Price and amount fields should use "number" type')
    if is_address_name(name) and field_type is not FieldType.JSON:
        issues.append('Address fields should use "json" type')
    return ValidationResult.from_issues(issues)


def validate_relationship(
    field_name: str,
    related_entity: str,
    known_entities: Iterable[str] | None = None,
) -> ValidationResult:
    """Validate a reference field pointing at another entity."""
    known = set(known_entities) if known_entities is not None else set(COMMON_ENTITIES)
    issues = []
    if not field_name.endswith("Id"):
        issues.append('Relationship fields should end with "Id"')
    if related_entity not in known:
        issues.append(f'Related entity "{related_entity}" may not exist')
    return ValidationResult.from_issues(issues)


def validate_field(spec: str) -> ValidationResult:
    """Validate a "fieldName:dataType" pair in isolation."""
    name, sep, data_type = spec.partition(":")
    name, data_type = name.strip(), data_type.strip()
    if not sep or not name or not data_type:
        return ValidationResult.from_issues(
            [f'Invalid format "{spec}". Use "fieldName:dataType" (e.g. "createdAt:date")']
        )
    return validate_field_naming(name).merge(validate_data_type(name, data_type))
