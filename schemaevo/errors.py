"""
Error types for schemaevo.

This module defines the exceptions raised by the engine:
- SchemaEvoError: Base exception
- SchemaFormatError: Schema description cannot be read or has the wrong shape
- MalformedRelationshipError: A relationship references an unknown entity
- ComparisonResultInvalidError: Planner received a change with no schema element behind it
- SnapshotIntegrityError: A persisted snapshot does not match its checksum

Invariants:
    - All errors inherit from SchemaEvoError
    - Analyzer findings and comparator changes are data, never exceptions
    - Only structural contract violations raise
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SchemaEvoError(Exception):
    """Base exception for all schemaevo errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SCHEMAEVO_ERROR"
        self.details = details or {}


class SchemaFormatError(SchemaEvoError):
    """Schema description could not be interpreted.

    Raised when:
    - The description is not a mapping
    - 'entities' or 'relationships' has the wrong shape
    - A description file is missing, unreadable or has an unknown extension
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="SCHEMA_FORMAT_ERROR",
            details={"source": source},
        )
        self.source = source


class MalformedRelationshipError(SchemaEvoError):
    """A relationship side references an entity absent from the description.

    Fatal for the snapshot being built; analysis is aborted.
    """

    def __init__(self, relationship: str, side: str, entity: str) -> None:
        super().__init__(
            f"Relationship '{relationship}' {side} side references unknown entity '{entity}'",
            code="MALFORMED_RELATIONSHIP",
            details={"relationship": relationship, "side": side, "entity": entity},
        )
        self.relationship = relationship
        self.side = side
        self.entity = entity


class ComparisonResultInvalidError(SchemaEvoError):
    """A change references schema elements missing from both snapshots.

    Indicates a comparator/planner contract violation and is never recovered.
    """

    def __init__(
        self,
        reason: str,
        kind: Optional[str] = None,
        entity: Optional[str] = None,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Invalid comparison result: {reason}",
            code="COMPARISON_RESULT_INVALID",
            details={"kind": kind, "entity": entity, "field": field_name, "reason": reason},
        )
        self.reason = reason
        self.kind = kind
        self.entity = entity
        self.field_name = field_name


class SnapshotIntegrityError(SchemaEvoError):
    """Persisted snapshot content does not match its stored checksum."""

    def __init__(
        self,
        message: str,
        expected_checksum: Optional[str] = None,
        actual_checksum: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SNAPSHOT_INTEGRITY_ERROR",
            details={
                "expected_checksum": expected_checksum,
                "actual_checksum": actual_checksum,
            },
        )
        self.expected_checksum = expected_checksum
        self.actual_checksum = actual_checksum
