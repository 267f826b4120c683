"""
Core type definitions for the schemaevo snapshot model.

This module defines the canonical, comparable representation of a schema:
- FieldSpec: One typed attribute of an entity
- EntitySpec: A named entity and its ordered fields
- RelationshipSpec: A named link between two entities (forward + reverse side)
- Snapshot: Immutable, checksummed view of a whole schema at a point in time

Invariants:
    - unique implies indexed on every FieldSpec
    - Field names are unique within an entity (mapping keys)
    - Entity and relationship names are unique within a Snapshot
    - Snapshots are never mutated after construction

How to change safely:
    - Add new FieldType members only together with a comparator table entry
    - Keep to_dict() output stable; checksums are computed from it

Example:
    >>> total = FieldSpec(name="total", type=FieldType.NUMBER)
    >>> orders = EntitySpec.create("orders", [total])
    >>> orders.field_count
    1
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class FieldType(Enum):
    """Closed set of semantic field types.

    DYNAMIC stands for the storage service's untyped "any" attribute.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    JSON = "json"
    DYNAMIC = "dynamic"
    REFERENCE = "reference"

    @classmethod
    def from_str(cls, value: str) -> FieldType:
        """Convert string representation to FieldType.

        Accepts the canonical values plus the aliases used by common
        schema formats ("any", "ref", "str", "bool", "timestamp").

        Raises:
            ValueError: If value is not a known type or alias
        """
        normalized = value.strip().lower()
        if normalized in _TYPE_ALIASES:
            return _TYPE_ALIASES[normalized]
        for kind in cls:
            if kind.value == normalized:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field type '{value}'. Valid types: {valid}")


_TYPE_ALIASES: dict[str, FieldType] = {
    "any": FieldType.DYNAMIC,
    "ref": FieldType.REFERENCE,
    "str": FieldType.STRING,
    "bool": FieldType.BOOLEAN,
    "timestamp": FieldType.DATE,
}


class Cardinality(Enum):
    """How many entities sit on one side of a relationship."""

    ONE = "one"
    MANY = "many"


@dataclass(frozen=True)
class FieldSpec:
    """Definition of a single field within an entity.

    Attributes:
        name: Field identifier
        type: Semantic type of the field
        optional: Whether the field may be absent
        indexed: Whether the storage service indexes the field
        unique: Whether values must be unique (implies indexed)
    """

    name: str
    type: FieldType = FieldType.DYNAMIC
    optional: bool = False
    indexed: bool = False
    unique: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.unique and not self.indexed:
            raise ValueError(f"Field '{self.name}' is unique but not indexed")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        return {
            "name": self.name,
            "type": self.type.value,
            "optional": self.optional,
            "indexed": self.indexed,
            "unique": self.unique,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldSpec:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            type=FieldType.from_str(data.get("type", "dynamic")),
            optional=data.get("optional", False),
            indexed=data.get("indexed", False),
            unique=data.get("unique", False),
        )


@dataclass(frozen=True)
class EntitySpec:
    """A named entity with an ordered, read-only mapping of fields.

    Use EntitySpec.create() to build one from an iterable of FieldSpecs;
    it rejects duplicate field names.
    """

    name: str
    fields: Mapping[str, FieldSpec] = dataclass_field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Entity name cannot be empty")
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        for key, spec in self.fields.items():
            if key != spec.name:
                raise ValueError(
                    f"Entity '{self.name}' maps key '{key}' to field named '{spec.name}'"
                )

    @classmethod
    def create(cls, name: str, fields: Iterable[FieldSpec] = ()) -> EntitySpec:
        """Create an entity from field specs, preserving their order."""
        mapping: dict[str, FieldSpec] = {}
        for spec in fields:
            if spec.name in mapping:
                raise ValueError(f"Duplicate field name '{spec.name}' in entity '{name}'")
            mapping[spec.name] = spec
        return cls(name=name, fields=MappingProxyType(mapping))

    @property
    def field_count(self) -> int:
        """Number of fields on the entity."""
        return len(self.fields)

    def get_field(self, name: str) -> FieldSpec | None:
        return self.fields.get(name)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "fields": {name: spec.to_dict() for name, spec in self.fields.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntitySpec:
        """Create from dictionary representation."""
        fields = [FieldSpec.from_dict(f) for f in data.get("fields", {}).values()]
        return cls.create(data["name"], fields)


@dataclass(frozen=True)
class RelationshipSide:
    """One end of a relationship.

    Attributes:
        entity: Entity this side is attached to
        cardinality: ONE or MANY
        label: Attribute name under which the link is exposed on the entity
    """

    entity: str
    cardinality: Cardinality = Cardinality.ONE
    label: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "entity": self.entity,
            "cardinality": self.cardinality.value,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipSide:
        return cls(
            entity=data["entity"],
            cardinality=Cardinality(data.get("cardinality", "one")),
            label=data.get("label", ""),
        )


@dataclass(frozen=True)
class RelationshipSpec:
    """Named link between two entities.

    Invariants:
        - Both sides reference entities present in the same Snapshot
          (enforced by the snapshot builder)
    """

    name: str
    forward: RelationshipSide
    reverse: RelationshipSide

    def involves(self, entity: str) -> bool:
        """Whether either side is attached to the given entity."""
        return self.forward.entity == entity or self.reverse.entity == entity

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "forward": self.forward.to_dict(),
            "reverse": self.reverse.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RelationshipSpec:
        return cls(
            name=data["name"],
            forward=RelationshipSide.from_dict(data["forward"]),
            reverse=RelationshipSide.from_dict(data["reverse"]),
        )


@dataclass(frozen=True)
class Snapshot:
    """Immutable, checksummed structural representation of a schema.

    Snapshots are produced by the snapshot builder (or reloaded from a
    snapshot store) and consumed by the analyzer and the comparator.
    The checksum depends only on entity and relationship content, never
    on insertion order, timestamp or version label.

    Attributes:
        timestamp: When the snapshot was taken (UTC)
        version: Free-form version label
        entities: Read-only mapping of entity name to EntitySpec
        relationships: Read-only mapping of relationship name to RelationshipSpec
        checksum: 'sha256:<hex>' over the canonical content
    """

    timestamp: datetime
    version: str
    entities: Mapping[str, EntitySpec]
    relationships: Mapping[str, RelationshipSpec]
    checksum: str

    def __post_init__(self) -> None:
        if not isinstance(self.entities, MappingProxyType):
            object.__setattr__(self, "entities", MappingProxyType(dict(self.entities)))
        if not isinstance(self.relationships, MappingProxyType):
            object.__setattr__(
                self, "relationships", MappingProxyType(dict(self.relationships))
            )

    @classmethod
    def empty(cls, version: str = "baseline") -> Snapshot:
        """Snapshot with no entities, used as the first-run baseline."""
        from .snapshot import compute_checksum

        return cls(
            timestamp=datetime.now(timezone.utc),
            version=version,
            entities={},
            relationships={},
            checksum=compute_checksum({}, {}),
        )

    @property
    def entity_names(self) -> list[str]:
        return sorted(self.entities)

    def get_entity(self, name: str) -> EntitySpec | None:
        return self.entities.get(name)

    def relationships_for(self, entity: str) -> list[str]:
        """Names of relationships with a side attached to the entity."""
        return sorted(
            name for name, rel in self.relationships.items() if rel.involves(entity)
        )

    def content_dict(self) -> dict[str, Any]:
        """Entity and relationship content only (the checksum input)."""
        return {
            "entities": {name: e.to_dict() for name, e in self.entities.items()},
            "relationships": {name: r.to_dict() for name, r in self.relationships.items()},
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for persistence."""
        result = self.content_dict()
        result.update(
            {
                "timestamp": self.timestamp.isoformat(),
                "version": self.version,
                "checksum": self.checksum,
            }
        )
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """Create from dictionary representation.

        The stored checksum is carried over verbatim; callers that need an
        integrity guarantee compare it against compute_checksum().
        """
        entities = {
            name: EntitySpec.from_dict(e) for name, e in data.get("entities", {}).items()
        }
        relationships = {
            name: RelationshipSpec.from_dict(r)
            for name, r in data.get("relationships", {}).items()
        }
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            timestamp=timestamp,
            version=data.get("version", ""),
            entities=entities,
            relationships=relationships,
            checksum=data.get("checksum", ""),
        )

    @staticmethod
    def looks_like_snapshot(data: Any) -> bool:
        """Whether a loaded document is a persisted Snapshot rather than a description."""
        return isinstance(data, dict) and "checksum" in data and "timestamp" in data
