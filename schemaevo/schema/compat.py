"""
Schema comparison for schemaevo.

Computes the structural diff between two Snapshots and classifies every
difference by compatibility impact:
- Removing an entity, field or relationship is breaking (data loss)
- Adding one is an enhancement
- Field modifications are classified per property (type, optional,
  indexed, unique)

Invariants:
    - compare(s, s) yields no changes
    - A rename is never inferred: it is always one removal plus one addition
    - Output order depends only on snapshot content (names are walked in
      sorted order), never on insertion order
    - migration_required is true iff at least one change is breaking

How to change safely:
    - Only widen COMPATIBLE_TYPE_CHANGES when the conversion is lossless
      for every existing value; a wrong "enhancement" means silent data loss

Example:
    >>> result = compare_snapshots(old_snapshot, new_snapshot)
    >>> if result.migration_required:
    ...     plan = MigrationPlanner().plan(result)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .types import EntitySpec, FieldSpec, FieldType, RelationshipSpec, Snapshot

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Types of structural changes between two snapshots."""

    ENTITY_ADDED = "entity_added"
    ENTITY_REMOVED = "entity_removed"
    FIELD_ADDED = "field_added"
    FIELD_REMOVED = "field_removed"
    FIELD_MODIFIED = "field_modified"
    RELATIONSHIP_ADDED = "relationship_added"
    RELATIONSHIP_REMOVED = "relationship_removed"

    @property
    def is_field_change(self) -> bool:
        return self in (
            ChangeKind.FIELD_ADDED,
            ChangeKind.FIELD_REMOVED,
            ChangeKind.FIELD_MODIFIED,
        )

    @property
    def is_relationship_change(self) -> bool:
        return self in (ChangeKind.RELATIONSHIP_ADDED, ChangeKind.RELATIONSHIP_REMOVED)


class Impact(Enum):
    """Compatibility impact of a change."""

    BREAKING = "breaking"
    NON_BREAKING = "non_breaking"
    ENHANCEMENT = "enhancement"


# Type conversions that keep every existing value readable.
COMPATIBLE_TYPE_CHANGES = frozenset(
    {
        (FieldType.DYNAMIC, FieldType.JSON),
        (FieldType.STRING, FieldType.JSON),
    }
)


def type_change_impact(old_type: FieldType, new_type: FieldType) -> Impact:
    """Classify a field type change."""
    if (old_type, new_type) in COMPATIBLE_TYPE_CHANGES:
        return Impact.ENHANCEMENT
    return Impact.BREAKING


@dataclass(frozen=True)
class SchemaChange:
    """A single structural difference between two snapshots.

    Attributes:
        kind: The type of change
        entity: Entity the change belongs to (forward entity for relationships)
        impact: Compatibility impact
        description: Human-readable description of the change
        field: Field name for field changes
        attribute: Changed property for FIELD_MODIFIED (type/optional/indexed/unique)
        relationship: Relationship name for relationship changes
        old_value: Previous value (removed spec, or old property value)
        new_value: New value (added spec, or new property value)
    """

    kind: ChangeKind
    entity: str
    impact: Impact
    description: str = ""
    field: Optional[str] = None
    attribute: Optional[str] = None
    relationship: Optional[str] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None

    @property
    def is_breaking(self) -> bool:
        return self.impact is Impact.BREAKING

    @property
    def path(self) -> str:
        """Dotted location of the change, e.g. 'orders.total'."""
        if self.relationship:
            return f"{self.entity}~{self.relationship}"
        if self.field:
            return f"{self.entity}.{self.field}"
        return self.entity

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "entity": self.entity,
            "impact": self.impact.value,
            "description": self.description,
        }
        if self.field is not None:
            result["field"] = self.field
        if self.attribute is not None:
            result["attribute"] = self.attribute
        if self.relationship is not None:
            result["relationship"] = self.relationship
        if self.old_value is not None:
            result["old_value"] = to_jsonable(self.old_value)
        if self.new_value is not None:
            result["new_value"] = to_jsonable(self.new_value)
        return result

    def __str__(self) -> str:
        return f"[{self.impact.value.upper()}] {self.kind.value}: {self.path} - {self.description}"


def to_jsonable(value: Any) -> Any:
    """Convert snapshot parts and enums to their JSON form; other values pass through."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing two snapshots.

    Both input snapshots are kept so that downstream consumers (the
    migration planner) can check every change against real schema elements.
    """

    old_snapshot: Snapshot
    new_snapshot: Snapshot
    changes: Tuple[SchemaChange, ...] = ()

    @property
    def has_changes(self) -> bool:
        return len(self.changes) > 0

    @property
    def summary_counts(self) -> Dict[ChangeKind, int]:
        """Number of changes per kind (every kind present, zero-filled)."""
        counts = {kind: 0 for kind in ChangeKind}
        for change in self.changes:
            counts[change.kind] += 1
        return counts

    @property
    def breaking_changes(self) -> List[SchemaChange]:
        """Breaking changes in their original relative order."""
        return [c for c in self.changes if c.is_breaking]

    @property
    def migration_required(self) -> bool:
        return len(self.breaking_changes) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "old_version": self.old_snapshot.version,
            "new_version": self.new_snapshot.version,
            "old_checksum": self.old_snapshot.checksum,
            "new_checksum": self.new_snapshot.checksum,
            "has_changes": self.has_changes,
            "migration_required": self.migration_required,
            "summary": {kind.value: n for kind, n in self.summary_counts.items()},
            "changes": [c.to_dict() for c in self.changes],
            "breaking_changes": [c.to_dict() for c in self.breaking_changes],
        }


class Comparator:
    """Diffs two snapshots into an ordered list of SchemaChanges.

    Stateless; safe to share across concurrent comparisons.
    """

    def compare(self, old: Snapshot, new: Snapshot) -> ComparisonResult:
        """Compare two snapshots.

        Args:
            old: The baseline (currently deployed) snapshot
            new: The snapshot to be deployed

        Returns:
            ComparisonResult with all detected changes
        """
        changes: List[SchemaChange] = []
        changes.extend(_check_entities(old.entities, new.entities))
        changes.extend(_check_relationships(old.relationships, new.relationships))

        result = ComparisonResult(old_snapshot=old, new_snapshot=new, changes=tuple(changes))
        logger.info(
            f"Compared {old.version or '?'} -> {new.version or '?'}: "
            f"{len(result.changes)} change(s), {len(result.breaking_changes)} breaking"
        )
        return result


def compare_snapshots(old: Snapshot, new: Snapshot) -> ComparisonResult:
    """Convenience wrapper around Comparator().compare()."""
    return Comparator().compare(old, new)


def _check_entities(
    old_entities: Mapping[str, EntitySpec],
    new_entities: Mapping[str, EntitySpec],
) -> List[SchemaChange]:
    """Check entity additions, removals and field changes."""
    changes: List[SchemaChange] = []

    for name in sorted(set(new_entities) - set(old_entities)):
        changes.append(SchemaChange(
            kind=ChangeKind.ENTITY_ADDED,
            entity=name,
            impact=Impact.ENHANCEMENT,
            new_value=new_entities[name],
            description=f'Entity "{name}" was added',
        ))

    for name in sorted(set(old_entities) - set(new_entities)):
        changes.append(SchemaChange(
            kind=ChangeKind.ENTITY_REMOVED,
            entity=name,
            impact=Impact.BREAKING,
            old_value=old_entities[name],
            description=f'Entity "{name}" was removed',
        ))

    for name in sorted(set(old_entities) & set(new_entities)):
        changes.extend(_check_fields(name, old_entities[name], new_entities[name]))

    return changes


def _check_fields(entity: str, old: EntitySpec, new: EntitySpec) -> List[SchemaChange]:
    """Check field changes within an entity present in both snapshots."""
    changes: List[SchemaChange] = []

    for name in sorted(set(new.fields) - set(old.fields)):
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_ADDED,
            entity=entity,
            field=name,
            impact=Impact.ENHANCEMENT,
            new_value=new.fields[name],
            description=f'Field "{name}" was added to entity "{entity}"',
        ))

    for name in sorted(set(old.fields) - set(new.fields)):
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_REMOVED,
            entity=entity,
            field=name,
            impact=Impact.BREAKING,
            old_value=old.fields[name],
            description=f'Field "{name}" was removed from entity "{entity}"',
        ))

    for name in sorted(set(old.fields) & set(new.fields)):
        changes.extend(_check_field_diff(entity, old.fields[name], new.fields[name]))

    return changes


def _check_field_diff(entity: str, old: FieldSpec, new: FieldSpec) -> List[SchemaChange]:
    """Check each property of a field independently."""
    changes: List[SchemaChange] = []

    def modified(attribute: str, old_value: Any, new_value: Any, impact: Impact, text: str):
        changes.append(SchemaChange(
            kind=ChangeKind.FIELD_MODIFIED,
            entity=entity,
            field=old.name,
            attribute=attribute,
            impact=impact,
            old_value=old_value,
            new_value=new_value,
            description=text,
        ))

    if old.type is not new.type:
        modified(
            "type", old.type, new.type,
            type_change_impact(old.type, new.type),
            f'Field "{old.name}" type changed from "{old.type.value}" to "{new.type.value}"',
        )

    if old.optional != new.optional:
        # Existing missing values violate a field that became required
        impact = Impact.NON_BREAKING if new.optional else Impact.BREAKING
        modified(
            "optional", old.optional, new.optional, impact,
            f'Field "{old.name}" optional status changed from {old.optional} to {new.optional}',
        )

    if old.indexed != new.indexed:
        modified(
            "indexed", old.indexed, new.indexed, Impact.ENHANCEMENT,
            f'Field "{old.name}" index status changed from {old.indexed} to {new.indexed}',
        )

    if old.unique != new.unique:
        # Existing duplicates violate a new uniqueness constraint
        impact = Impact.BREAKING if new.unique else Impact.NON_BREAKING
        modified(
            "unique", old.unique, new.unique, impact,
            f'Field "{old.name}" unique constraint changed from {old.unique} to {new.unique}',
        )

    return changes


def _check_relationships(
    old_rels: Mapping[str, RelationshipSpec],
    new_rels: Mapping[str, RelationshipSpec],
) -> List[SchemaChange]:
    """Check relationship changes.

    A relationship whose sides changed under the same name is reported as
    a removal followed by an addition, the same way a field rename is.
    """
    changes: List[SchemaChange] = []

    def added(rel: RelationshipSpec, text: str) -> SchemaChange:
        return SchemaChange(
            kind=ChangeKind.RELATIONSHIP_ADDED,
            entity=rel.forward.entity,
            relationship=rel.name,
            impact=Impact.ENHANCEMENT,
            new_value=rel,
            description=text,
        )

    def removed(rel: RelationshipSpec, text: str) -> SchemaChange:
        return SchemaChange(
            kind=ChangeKind.RELATIONSHIP_REMOVED,
            entity=rel.forward.entity,
            relationship=rel.name,
            impact=Impact.BREAKING,
            old_value=rel,
            description=text,
        )

    for name in sorted(set(new_rels) - set(old_rels)):
        changes.append(added(new_rels[name], f'Relationship "{name}" was added'))

    for name in sorted(set(old_rels) - set(new_rels)):
        changes.append(removed(old_rels[name], f'Relationship "{name}" was removed'))

    for name in sorted(set(old_rels) & set(new_rels)):
        if old_rels[name] != new_rels[name]:
            changes.append(removed(
                old_rels[name], f'Relationship "{name}" was redefined (old definition removed)'
            ))
            changes.append(added(
                new_rels[name], f'Relationship "{name}" was redefined (new definition added)'
            ))

    return changes
