"""
Consistency analyzer for schemaevo.

Inspects a single Snapshot for naming, typing, duplication and
relationship-modeling problems. Findings are data: analysis always
succeeds, however severe the problems it reports.

Checks run per entity, in this order:
1. Field naming (camelCase, "xxxAt" timestamps, known abbreviations)
2. Duplicate concept fields (deprecated + canonical name on one entity)
3. Type misuse (dynamic fields, names implying date/number/json)
4. Missing relationship modeling (role fields stored as strings)
Then once per snapshot:
5. Duplicate entities (known alias pairs)

Invariants:
    - Deterministic for a given Snapshot and rule set
    - No state is kept between analyze() calls
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..schema.types import EntitySpec, FieldSpec, FieldType, Snapshot
from .rules import (
    DEFAULT_RULES,
    AnalyzerRules,
    has_lowercase_timestamp_suffix,
    is_address_name,
    is_monetary_name,
    is_timestamp_name,
    suggest_field_name,
    validate_field_naming,
)

logger = logging.getLogger(__name__)


class InconsistencyKind(Enum):
    """Categories of consistency findings."""

    FIELD_NAMING = "field_naming"
    DUPLICATE_FIELD = "duplicate_field"
    DATA_TYPE = "data_type"
    MISSING_RELATIONSHIP = "missing_relationship"
    DUPLICATE_ENTITY = "duplicate_entity"


class Severity(Enum):
    """Finding severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


@dataclass(frozen=True)
class Inconsistency:
    """A single-snapshot quality finding.

    Attributes:
        kind: Category of the finding
        entity: Entity the finding belongs to
        description: What is wrong
        suggested_fix: How to fix it
        severity: low, medium or high
        field: Field name, for field-level findings
    """

    kind: InconsistencyKind
    entity: str
    description: str
    suggested_fix: str
    severity: Severity
    field: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "entity": self.entity,
            "description": self.description,
            "suggested_fix": self.suggested_fix,
            "severity": self.severity.value,
        }
        if self.field is not None:
            result["field"] = self.field
        return result

    def __str__(self) -> str:
        location = f"{self.entity}.{self.field}" if self.field else self.entity
        return f"[{self.severity.value.upper()}] {self.kind.value}: {location} - {self.description}"


def count_by_severity(findings: Tuple[Inconsistency, ...]) -> Dict[Severity, int]:
    counts = {severity: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity] += 1
    return counts


@dataclass(frozen=True)
class EntityAnalysis:
    """Per-entity breakdown of an analysis."""

    name: str
    fields: Tuple[FieldSpec, ...]
    relationships: Tuple[str, ...]
    inconsistencies: Tuple[Inconsistency, ...]

    @property
    def field_count(self) -> int:
        return len(self.fields)

    @property
    def severity_counts(self) -> Dict[Severity, int]:
        return count_by_severity(self.inconsistencies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "field_count": self.field_count,
            "fields": [f.to_dict() for f in self.fields],
            "relationships": list(self.relationships),
            "inconsistencies": [i.to_dict() for i in self.inconsistencies],
            "severity_counts": {s.value: n for s, n in self.severity_counts.items()},
        }


@dataclass(frozen=True)
class AnalysisReport:
    """Result of analyzing one snapshot."""

    version: str
    checksum: str
    inconsistencies: Tuple[Inconsistency, ...]
    entities: Tuple[EntityAnalysis, ...]
    total_relationships: int = 0

    @property
    def total_entities(self) -> int:
        return len(self.entities)

    @property
    def total_fields(self) -> int:
        return sum(e.field_count for e in self.entities)

    @property
    def severity_counts(self) -> Dict[Severity, int]:
        return count_by_severity(self.inconsistencies)

    @property
    def summary(self) -> Dict[InconsistencyKind, int]:
        """Number of findings per kind (every kind present, zero-filled)."""
        counts = {kind: 0 for kind in InconsistencyKind}
        for finding in self.inconsistencies:
            counts[finding.kind] += 1
        return counts

    @property
    def critical_issues(self) -> List[Inconsistency]:
        return [i for i in self.inconsistencies if i.severity is Severity.HIGH]

    def get_entity(self, name: str) -> Optional[EntityAnalysis]:
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "checksum": self.checksum,
            "total_entities": self.total_entities,
            "total_fields": self.total_fields,
            "total_relationships": self.total_relationships,
            "severity_counts": {s.value: n for s, n in self.severity_counts.items()},
            "summary": {k.value: n for k, n in self.summary.items()},
            "inconsistencies": [i.to_dict() for i in self.inconsistencies],
            "entities": [e.to_dict() for e in self.entities],
        }


class ConsistencyAnalyzer:
    """Finds consistency problems in a single snapshot.

    Instantiate per call or share freely: the analyzer holds only its
    (immutable) rule tables.

    Example:
        >>> report = ConsistencyAnalyzer().analyze(snapshot)
        >>> for issue in report.critical_issues:
        ...     print(issue)
    """

    def __init__(self, rules: AnalyzerRules = DEFAULT_RULES) -> None:
        self.rules = rules

    def analyze(self, snapshot: Snapshot) -> AnalysisReport:
        """Run every check against the snapshot.

        Args:
            snapshot: Snapshot to inspect

        Returns:
            AnalysisReport with global findings and a per-entity breakdown
        """
        entity_findings: Dict[str, List[Inconsistency]] = {}
        inconsistencies: List[Inconsistency] = []
        for name in snapshot.entity_names:
            findings = self._check_entity(snapshot.entities[name])
            entity_findings[name] = findings
            inconsistencies.extend(findings)

        # Alias findings are global but also belong to the deprecated entity
        for finding in self._check_duplicate_entities(snapshot):
            inconsistencies.append(finding)
            entity_findings[finding.entity].append(finding)

        entities = tuple(
            EntityAnalysis(
                name=name,
                fields=tuple(snapshot.entities[name].fields.values()),
                relationships=tuple(snapshot.relationships_for(name)),
                inconsistencies=tuple(entity_findings[name]),
            )
            for name in snapshot.entity_names
        )

        report = AnalysisReport(
            version=snapshot.version,
            checksum=snapshot.checksum,
            inconsistencies=tuple(inconsistencies),
            entities=entities,
            total_relationships=len(snapshot.relationships),
        )
        counts = report.severity_counts
        logger.info(
            f"Analyzed snapshot {snapshot.version}: {len(inconsistencies)} finding(s) "
            f"(high={counts[Severity.HIGH]}, medium={counts[Severity.MEDIUM]}, "
            f"low={counts[Severity.LOW]})"
        )
        return report

    def _check_entity(self, entity: EntitySpec) -> List[Inconsistency]:
        fields = list(entity.fields.values())
        findings: List[Inconsistency] = []
        findings.extend(self._check_field_naming(entity.name, fields))
        findings.extend(self._check_duplicate_fields(entity.name, fields))
        findings.extend(self._check_data_types(entity.name, fields))
        findings.extend(self._check_missing_relationships(entity.name, fields))
        return findings

    def _check_field_naming(self, entity: str, fields: List[FieldSpec]) -> List[Inconsistency]:
        """At most one naming finding per field, at the highest applicable severity."""
        findings = []
        for spec in fields:
            name = spec.name
            if name in self.rules.naming_fixes:
                findings.append(Inconsistency(
                    kind=InconsistencyKind.FIELD_NAMING,
                    entity=entity,
                    field=name,
                    description=f'Abbreviated field name "{name}"',
                    suggested_fix=f'Rename "{name}" to "{self.rules.naming_fixes[name]}"',
                    severity=Severity.MEDIUM,
                ))
                continue

            result = validate_field_naming(name)
            if result.is_valid:
                continue
            severity = (
                Severity.MEDIUM if has_lowercase_timestamp_suffix(name) else Severity.LOW
            )
            suggestion = suggest_field_name(name, self.rules.naming_fixes)
            findings.append(Inconsistency(
                kind=InconsistencyKind.FIELD_NAMING,
                entity=entity,
                field=name,
                description="; ".join(result.issues),
                suggested_fix=f'Rename "{name}" to "{suggestion}" for consistency',
                severity=severity,
            ))
        return findings

    def _check_duplicate_fields(
        self, entity: str, fields: List[FieldSpec]
    ) -> List[Inconsistency]:
        names = {spec.name for spec in fields}
        findings = []
        for old, new in self.rules.deprecated_field_pairs:
            if old in names and new in names:
                findings.append(Inconsistency(
                    kind=InconsistencyKind.DUPLICATE_FIELD,
                    entity=entity,
                    field=old,
                    description=f'Duplicate field: both "{old}" and "{new}" exist',
                    suggested_fix=f'Remove "{old}" and use "{new}" consistently',
                    severity=Severity.HIGH,
                ))
        return findings

    def _check_data_types(self, entity: str, fields: List[FieldSpec]) -> List[Inconsistency]:
        findings = []

        def misuse(spec: FieldSpec, description: str, fix: str) -> None:
            findings.append(Inconsistency(
                kind=InconsistencyKind.DATA_TYPE,
                entity=entity,
                field=spec.name,
                description=description,
                suggested_fix=fix,
                severity=Severity.MEDIUM,
            ))

        for spec in fields:
            if spec.type is FieldType.DYNAMIC:
                misuse(
                    spec,
                    'Using "dynamic" type for structured data',
                    'Change "dynamic" type to "json" (or a scalar type) for better type safety',
                )
            if is_timestamp_name(spec.name) and spec.type is not FieldType.DATE:
                misuse(
                    spec,
                    f'Timestamp field typed "{spec.type.value}"',
                    'Change to "date" type',
                )
            if is_monetary_name(spec.name) and spec.type is not FieldType.NUMBER:
                misuse(
                    spec,
                    f'Monetary field typed "{spec.type.value}"',
                    'Change to "number" type',
                )
            if is_address_name(spec.name) and spec.type not in (FieldType.JSON, FieldType.DYNAMIC):
                misuse(
                    spec,
                    "Address field should use structured type",
                    'Change to "json" type for structured address data',
                )
        return findings

    def _check_missing_relationships(
        self, entity: str, fields: List[FieldSpec]
    ) -> List[Inconsistency]:
        roles = self.rules.relationship_roles.get(entity, ())
        findings = []
        for spec in fields:
            if spec.name in roles and spec.type is FieldType.STRING:
                target = self.rules.role_entity(spec.name)
                findings.append(Inconsistency(
                    kind=InconsistencyKind.MISSING_RELATIONSHIP,
                    entity=entity,
                    field=spec.name,
                    description=f'Field "{spec.name}" stores a string instead of a relationship',
                    suggested_fix=(
                        f'Convert to "{spec.name}Id" reference field linked to the '
                        f'"{target}" entity'
                    ),
                    severity=Severity.HIGH,
                ))
        return findings

    def _check_duplicate_entities(self, snapshot: Snapshot) -> List[Inconsistency]:
        findings = []
        for old, new in self.rules.duplicate_entity_aliases:
            if old in snapshot.entities and new in snapshot.entities:
                findings.append(Inconsistency(
                    kind=InconsistencyKind.DUPLICATE_ENTITY,
                    entity=old,
                    description=f'Duplicate entity: both "{old}" and "{new}" exist',
                    suggested_fix=f'Remove "{old}" entity and use "{new}" consistently',
                    severity=Severity.HIGH,
                ))
        return findings


def analyze_snapshot(snapshot: Snapshot, rules: AnalyzerRules = DEFAULT_RULES) -> AnalysisReport:
    """Convenience wrapper around ConsistencyAnalyzer(rules).analyze()."""
    return ConsistencyAnalyzer(rules).analyze(snapshot)
