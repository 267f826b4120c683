"""
Schema module for schemaevo.

This module provides the snapshot model and its evolution tooling:
- Type definitions (FieldSpec, EntitySpec, RelationshipSpec, Snapshot)
- Schema description parsing (YAML/JSON/dict)
- Snapshot building with order-independent checksums
- Snapshot comparison with compatibility impact classification

Invariants:
    - Snapshots are immutable once built
    - Equal checksums imply structurally equal snapshots
    - Renames are never inferred; they appear as removal + addition
"""

from .compat import (
    COMPATIBLE_TYPE_CHANGES,
    ChangeKind,
    Comparator,
    ComparisonResult,
    Impact,
    SchemaChange,
    compare_snapshots,
    type_change_impact,
)
from .format import SchemaDescription, load_description, parse_json, parse_schema, parse_yaml
from .snapshot import SnapshotBuilder, build_snapshot, compute_checksum, verify_checksum
from .types import (
    Cardinality,
    EntitySpec,
    FieldSpec,
    FieldType,
    RelationshipSide,
    RelationshipSpec,
    Snapshot,
)

__all__ = [
    # Types
    "FieldType",
    "Cardinality",
    "FieldSpec",
    "EntitySpec",
    "RelationshipSide",
    "RelationshipSpec",
    "Snapshot",
    # Description format
    "SchemaDescription",
    "parse_schema",
    "parse_yaml",
    "parse_json",
    "load_description",
    # Snapshots
    "SnapshotBuilder",
    "build_snapshot",
    "compute_checksum",
    "verify_checksum",
    # Comparison
    "ChangeKind",
    "Impact",
    "SchemaChange",
    "ComparisonResult",
    "Comparator",
    "compare_snapshots",
    "type_change_impact",
    "COMPATIBLE_TYPE_CHANGES",
]
