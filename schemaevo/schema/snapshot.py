"""
Snapshot builder for schemaevo.

Converts a schema description into an immutable, checksummed Snapshot,
the canonical form every other component works on.

Invariants:
    - build() is a pure function of its input (no I/O, no global state)
    - Checksums are computed over a canonical serialization: entities,
      relationships and fields sorted by name, so insertion order never
      affects the checksum
    - Every relationship side references an entity of the same snapshot

How to change safely:
    - Never change the canonical serialization without a migration path
      for persisted snapshots (their stored checksums would stop matching)

Example:
    >>> snapshot = SnapshotBuilder().build({"entities": {"orders": {"total": "number"}}}, "v1")
    >>> snapshot.checksum.startswith("sha256:")
    True
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..errors import MalformedRelationshipError, SchemaFormatError
from .format import FieldDescription, LinkSideDescription, SchemaDescription, parse_schema
from .types import (
    Cardinality,
    EntitySpec,
    FieldSpec,
    FieldType,
    RelationshipSide,
    RelationshipSpec,
    Snapshot,
)

logger = logging.getLogger(__name__)


def canonical_json(
    entities: Mapping[str, EntitySpec],
    relationships: Mapping[str, RelationshipSpec],
) -> str:
    """Canonical JSON of snapshot content (all mapping keys sorted)."""
    content = {
        "entities": {name: e.to_dict() for name, e in entities.items()},
        "relationships": {name: r.to_dict() for name, r in relationships.items()},
    }
    return json.dumps(content, sort_keys=True, separators=(",", ":"))


def compute_checksum(
    entities: Mapping[str, EntitySpec],
    relationships: Mapping[str, RelationshipSpec],
) -> str:
    """Compute the SHA-256 checksum of snapshot content.

    Returns:
        Checksum string in format 'sha256:<hash>'
    """
    canonical = canonical_json(entities, relationships)
    hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"


class SnapshotBuilder:
    """Builds Snapshots from schema descriptions.

    The builder holds no state between calls; one instance may be shared
    or a new one created per call.

    Example:
        >>> builder = SnapshotBuilder()
        >>> v1 = builder.build(description, version="2024-01-01")
    """

    def build(
        self,
        description: SchemaDescription | Mapping[str, Any],
        version: str,
        timestamp: datetime | None = None,
    ) -> Snapshot:
        """Build a Snapshot from a schema description.

        Args:
            description: Parsed SchemaDescription or the raw nested mapping
            version: Free-form version label
            timestamp: Snapshot time (defaults to now, UTC)

        Returns:
            Immutable Snapshot

        Raises:
            SchemaFormatError: If the description has the wrong shape
            MalformedRelationshipError: If a relationship side references
                an entity absent from the description
        """
        if not isinstance(description, SchemaDescription):
            if isinstance(description, Mapping):
                description = dict(description)
            description = parse_schema(description)

        entities: dict[str, EntitySpec] = {}
        for entity_name, field_descriptions in description.entities.items():
            specs = [self._build_field(entity_name, fd) for fd in field_descriptions]
            try:
                entities[entity_name] = EntitySpec.create(entity_name, specs)
            except ValueError as e:
                raise SchemaFormatError(str(e)) from e

        relationships: dict[str, RelationshipSpec] = {}
        for link in description.links:
            relationships[link.name] = RelationshipSpec(
                name=link.name,
                forward=self._build_side(link.name, "forward", link.forward, entities),
                reverse=self._build_side(link.name, "reverse", link.reverse, entities),
            )

        checksum = compute_checksum(entities, relationships)
        snapshot = Snapshot(
            timestamp=timestamp or datetime.now(timezone.utc),
            version=version,
            entities=entities,
            relationships=relationships,
            checksum=checksum,
        )
        logger.info(
            f"Built snapshot version={version} with {len(entities)} entities, "
            f"{len(relationships)} relationships, checksum={checksum}"
        )
        return snapshot

    def _build_field(self, entity_name: str, fd: FieldDescription) -> FieldSpec:
        """Resolve a field description into a FieldSpec."""
        field_type = FieldType.DYNAMIC
        if fd.type is None:
            logger.debug(f"{entity_name}.{fd.name}: no type given, using dynamic")
        else:
            try:
                field_type = FieldType.from_str(fd.type)
            except ValueError:
                logger.debug(
                    f"{entity_name}.{fd.name}: unknown type '{fd.type}', using dynamic"
                )

        indexed = fd.indexed
        if fd.unique and not indexed:
            logger.debug(f"{entity_name}.{fd.name}: unique field marked as indexed")
            indexed = True

        return FieldSpec(
            name=fd.name,
            type=field_type,
            optional=fd.optional,
            indexed=indexed,
            unique=fd.unique,
        )

    def _build_side(
        self,
        link_name: str,
        side: str,
        data: LinkSideDescription,
        entities: Mapping[str, EntitySpec],
    ) -> RelationshipSide:
        if data.entity not in entities:
            raise MalformedRelationshipError(link_name, side, data.entity)
        try:
            cardinality = Cardinality(data.cardinality.lower())
        except ValueError as e:
            raise SchemaFormatError(
                f"Relationship '{link_name}': invalid {side} cardinality "
                f"'{data.cardinality}' (expected 'one' or 'many')"
            ) from e
        return RelationshipSide(entity=data.entity, cardinality=cardinality, label=data.label)


def build_snapshot(
    description: SchemaDescription | Mapping[str, Any],
    version: str,
    timestamp: datetime | None = None,
) -> Snapshot:
    """Convenience wrapper around SnapshotBuilder().build()."""
    return SnapshotBuilder().build(description, version, timestamp=timestamp)


def verify_checksum(snapshot: Snapshot) -> bool:
    """Whether the snapshot's checksum matches its content."""
    return snapshot.checksum == compute_checksum(snapshot.entities, snapshot.relationships)
