"""
Schema description format for schemaevo.

The description is the read-only input handed over by the entity storage
service: per entity, a mapping of field name to field options, and per
relationship, a forward and a reverse side.

Example (YAML):
    entities:
      orders:
        orderNumber: {type: string, unique: true, indexed: true}
        total: {type: number}
        note: string.optional
    relationships:
      orderCustomer:
        forward: {entity: orders, cardinality: one, label: customer}
        reverse: {entity: customers, cardinality: many, label: orders}

The storage service's own link vocabulary ("links", "on", "has") is
accepted as an alias of "relationships", "entity" and "cardinality".
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..errors import SchemaFormatError

logger = logging.getLogger(__name__)

FIELD_FLAGS = ("optional", "indexed", "unique")


@dataclass
class FieldDescription:
    """Raw field options as found in a description.

    type is kept as written; resolving it (and defaulting unknown
    types) is the snapshot builder's job.
    """

    name: str
    type: str | None = None
    optional: bool = False
    indexed: bool = False
    unique: bool = False


@dataclass
class LinkSideDescription:
    """One side of a relationship as found in a description."""

    entity: str
    cardinality: str = "one"
    label: str = ""


@dataclass
class LinkDescription:
    """A relationship as found in a description."""

    name: str
    forward: LinkSideDescription
    reverse: LinkSideDescription


@dataclass
class SchemaDescription:
    """Complete parsed schema description."""

    entities: dict[str, list[FieldDescription]] = field(default_factory=dict)
    links: list[LinkDescription] = field(default_factory=list)

    @property
    def entity_names(self) -> set[str]:
        return set(self.entities)


def parse_flag(name: str, flag: str, value: Any) -> bool:
    """Parse an optional/indexed/unique value; only booleans are accepted."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise SchemaFormatError(
        f"Field '{name}': '{flag}' must be true or false, got {value!r}"
    )


def parse_field(name: str, data: Any) -> FieldDescription:
    """Parse a field from its description value.

    Accepts a mapping ({type, optional, indexed, unique}), a chained
    shorthand string ("string.unique.indexed.optional") or null.
    """
    if data is None:
        return FieldDescription(name=name)

    if isinstance(data, str):
        tokens = [t for t in data.replace("()", "").split(".") if t]
        if tokens and tokens[0] == "i":
            tokens = tokens[1:]
        if not tokens:
            return FieldDescription(name=name)
        flags = set(tokens[1:])
        unknown = flags - set(FIELD_FLAGS)
        if unknown:
            logger.warning(f"Field '{name}': ignoring unknown modifiers {sorted(unknown)}")
        return FieldDescription(
            name=name,
            type=tokens[0],
            optional="optional" in flags,
            indexed="indexed" in flags,
            unique="unique" in flags,
        )

    if isinstance(data, dict):
        raw_type = data.get("type")
        return FieldDescription(
            name=name,
            type=str(raw_type) if raw_type is not None else None,
            optional=parse_flag(name, "optional", data.get("optional")),
            indexed=parse_flag(name, "indexed", data.get("indexed")),
            unique=parse_flag(name, "unique", data.get("unique")),
        )

    raise SchemaFormatError(
        f"Field '{name}': expected a mapping or type string, got {type(data).__name__}"
    )


def parse_link_side(link_name: str, side: str, data: Any) -> LinkSideDescription:
    """Parse one side of a relationship."""
    if not isinstance(data, dict):
        raise SchemaFormatError(f"Relationship '{link_name}': missing {side} side")
    entity = data.get("entity", data.get("on"))
    if not entity:
        raise SchemaFormatError(f"Relationship '{link_name}': {side} side has no entity")
    return LinkSideDescription(
        entity=str(entity),
        cardinality=str(data.get("cardinality", data.get("has", "one"))),
        label=str(data.get("label", "")),
    )


def parse_link(name: str, data: Any) -> LinkDescription:
    """Parse a relationship from dict."""
    if not isinstance(data, dict):
        raise SchemaFormatError(f"Relationship '{name}': expected a mapping")
    return LinkDescription(
        name=name,
        forward=parse_link_side(name, "forward", data.get("forward")),
        reverse=parse_link_side(name, "reverse", data.get("reverse")),
    )


def parse_schema(data: Any) -> SchemaDescription:
    """Parse a complete schema description from dict."""
    if not isinstance(data, dict):
        raise SchemaFormatError(
            f"Schema description must be a mapping, got {type(data).__name__}"
        )

    raw_entities = data.get("entities") or {}
    if not isinstance(raw_entities, dict):
        raise SchemaFormatError("'entities' must map entity names to field definitions")

    entities: dict[str, list[FieldDescription]] = {}
    for entity_name, raw_fields in raw_entities.items():
        raw_fields = raw_fields or {}
        if not isinstance(raw_fields, dict):
            raise SchemaFormatError(f"Entity '{entity_name}': fields must be a mapping")
        entities[str(entity_name)] = [
            parse_field(str(name), value) for name, value in raw_fields.items()
        ]

    raw_links = data.get("relationships", data.get("links")) or {}
    if not isinstance(raw_links, dict):
        raise SchemaFormatError("'relationships' must map relationship names to sides")
    links = [parse_link(str(name), value) for name, value in raw_links.items()]

    return SchemaDescription(entities=entities, links=links)


def parse_yaml(yaml_str: str) -> SchemaDescription:
    """Parse schema from YAML string."""
    data = yaml.safe_load(yaml_str)
    return parse_schema(data or {})


def parse_json(json_str: str) -> SchemaDescription:
    """Parse schema from JSON string."""
    data = json.loads(json_str)
    return parse_schema(data or {})


def read_document(path: str | Path) -> Any:
    """Read a YAML or JSON document from disk.

    Raises:
        SchemaFormatError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaFormatError(f"Cannot read {path}: {e}", source=str(path)) from e

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(text)
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SchemaFormatError(f"Cannot parse {path}: {e}", source=str(path)) from e
    raise SchemaFormatError(
        f"Unsupported schema file extension '{suffix}' (use .yaml, .yml or .json)",
        source=str(path),
    )


def load_description(path: str | Path) -> SchemaDescription:
    """Load and parse a schema description file."""
    return parse_schema(read_document(path) or {})
