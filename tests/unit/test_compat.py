"""
Unit tests for snapshot comparison.

Tests cover:
- Detection of breaking changes
- Detection of non-breaking changes and enhancements
- Specific change types and emission order
- Breaking-change gating
"""

import pytest

from schemaevo.schema.compat import (
    ChangeKind,
    Comparator,
    Impact,
    compare_snapshots,
    to_jsonable,
    type_change_impact,
)
from schemaevo.schema.snapshot import build_snapshot
from schemaevo.schema.types import FieldType


def make_snapshot(entities, relationships=None, version="v"):
    """Helper to build a snapshot from a plain description."""
    return build_snapshot({"entities": entities, "relationships": relationships or {}}, version)


def link(forward, reverse, forward_card="one", reverse_card="many"):
    return {
        "forward": {"entity": forward, "cardinality": forward_card, "label": reverse},
        "reverse": {"entity": reverse, "cardinality": reverse_card, "label": forward},
    }


class TestCompatibilityChecking:
    """Tests for compatibility checking."""

    def test_no_changes(self):
        """Comparing a snapshot with itself yields nothing."""
        snapshot = make_snapshot(
            {"orders": {"total": "number"}, "customers": {"email": "string"}},
            {"orderCustomer": link("orders", "customers")},
        )
        result = compare_snapshots(snapshot, snapshot)
        assert result.changes == ()
        assert not result.has_changes
        assert not result.migration_required

    def test_add_entity(self):
        old = make_snapshot({"orders": {}})
        new = make_snapshot({"orders": {}, "customers": {}})

        result = compare_snapshots(old, new)

        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.kind == ChangeKind.ENTITY_ADDED
        assert change.impact == Impact.ENHANCEMENT
        assert change.new_value.name == "customers"

    def test_remove_entity_is_breaking(self):
        old = make_snapshot({"orders": {}, "customers": {}})
        new = make_snapshot({"orders": {}})

        result = compare_snapshots(old, new)

        assert [c.kind for c in result.breaking_changes] == [ChangeKind.ENTITY_REMOVED]
        assert result.migration_required

    def test_remove_field_is_breaking(self):
        """Removing a required field from orders."""
        old = make_snapshot({"orders": {"total": {"type": "number"}}})
        new = make_snapshot({"orders": {}})

        result = compare_snapshots(old, new)

        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.kind == ChangeKind.FIELD_REMOVED
        assert change.entity == "orders"
        assert change.field == "total"
        assert change.impact == Impact.BREAKING
        assert result.migration_required

    def test_rename_is_remove_plus_add(self):
        """A renamed field is never detected as a rename."""
        old = make_snapshot({"products": {"brand": "string"}})
        new = make_snapshot({"products": {"brandId": "reference"}})

        result = compare_snapshots(old, new)

        assert len(result.changes) == 2
        by_kind = {c.kind: c for c in result.changes}
        assert by_kind[ChangeKind.FIELD_REMOVED].field == "brand"
        assert by_kind[ChangeKind.FIELD_REMOVED].impact == Impact.BREAKING
        assert by_kind[ChangeKind.FIELD_ADDED].field == "brandId"
        assert by_kind[ChangeKind.FIELD_ADDED].impact == Impact.ENHANCEMENT

    def test_add_remove_symmetry(self):
        a = make_snapshot({"orders": {"total": "number"}})
        b = make_snapshot({"orders": {"total": "number", "note": "string"}})

        forward = compare_snapshots(a, b).changes
        backward = compare_snapshots(b, a).changes

        assert [(c.kind, c.field, c.impact) for c in forward] == [
            (ChangeKind.FIELD_ADDED, "note", Impact.ENHANCEMENT)
        ]
        assert [(c.kind, c.field, c.impact) for c in backward] == [
            (ChangeKind.FIELD_REMOVED, "note", Impact.BREAKING)
        ]


class TestFieldModification:
    """Tests for per-property field diffs."""

    @pytest.mark.parametrize(
        "old_type, new_type, impact",
        [
            ("any", "json", Impact.ENHANCEMENT),
            ("string", "json", Impact.ENHANCEMENT),
            ("string", "number", Impact.BREAKING),
            ("json", "string", Impact.BREAKING),
            ("number", "string", Impact.BREAKING),
        ],
    )
    def test_type_change(self, old_type, new_type, impact):
        old = make_snapshot({"orders": {"data": old_type}})
        new = make_snapshot({"orders": {"data": new_type}})

        (change,) = compare_snapshots(old, new).changes

        assert change.kind == ChangeKind.FIELD_MODIFIED
        assert change.attribute == "type"
        assert change.impact == impact
        assert change.old_value == FieldType.from_str(old_type)

    def test_type_change_table(self):
        assert type_change_impact(FieldType.DYNAMIC, FieldType.JSON) == Impact.ENHANCEMENT
        assert type_change_impact(FieldType.JSON, FieldType.DYNAMIC) == Impact.BREAKING

    def test_optional_to_required_is_breaking(self):
        old = make_snapshot({"orders": {"note": "string.optional"}})
        new = make_snapshot({"orders": {"note": "string"}})
        (change,) = compare_snapshots(old, new).changes
        assert change.attribute == "optional"
        assert change.impact == Impact.BREAKING

    def test_required_to_optional_is_non_breaking(self):
        old = make_snapshot({"orders": {"note": "string"}})
        new = make_snapshot({"orders": {"note": "string.optional"}})
        (change,) = compare_snapshots(old, new).changes
        assert change.impact == Impact.NON_BREAKING

    def test_index_changes_are_enhancements(self):
        old = make_snapshot({"orders": {"sku": "string"}})
        new = make_snapshot({"orders": {"sku": "string.indexed"}})
        (change,) = compare_snapshots(old, new).changes
        assert change.attribute == "indexed"
        assert change.impact == Impact.ENHANCEMENT

        (change,) = compare_snapshots(new, old).changes
        assert change.impact == Impact.ENHANCEMENT

    def test_adding_unique_is_breaking(self):
        old = make_snapshot({"orders": {"sku": "string.indexed"}})
        new = make_snapshot({"orders": {"sku": "string.indexed.unique"}})
        (change,) = compare_snapshots(old, new).changes
        assert change.attribute == "unique"
        assert change.impact == Impact.BREAKING

        (change,) = compare_snapshots(new, old).changes
        assert change.impact == Impact.NON_BREAKING

    def test_each_property_reported_separately(self):
        old = make_snapshot({"orders": {"sku": "string.optional"}})
        new = make_snapshot({"orders": {"sku": "json.unique"}})

        changes = compare_snapshots(old, new).changes

        assert [c.attribute for c in changes] == ["type", "optional", "indexed", "unique"]


class TestRelationships:
    """Tests for relationship diffs."""

    def test_added_and_removed(self):
        entities = {"orders": {}, "customers": {}, "stores": {}}
        old = make_snapshot(entities, {"orderCustomer": link("orders", "customers")})
        new = make_snapshot(entities, {"orderStore": link("orders", "stores")})

        changes = compare_snapshots(old, new).changes

        assert [(c.kind, c.relationship) for c in changes] == [
            (ChangeKind.RELATIONSHIP_ADDED, "orderStore"),
            (ChangeKind.RELATIONSHIP_REMOVED, "orderCustomer"),
        ]
        assert changes[0].impact == Impact.ENHANCEMENT
        assert changes[1].impact == Impact.BREAKING
        assert changes[1].entity == "orders"

    def test_redefined_is_remove_plus_add(self):
        entities = {"orders": {}, "customers": {}}
        old = make_snapshot(entities, {"orderCustomer": link("orders", "customers")})
        new = make_snapshot(
            entities, {"orderCustomer": link("orders", "customers", reverse_card="one")}
        )

        changes = compare_snapshots(old, new).changes

        assert [c.kind for c in changes] == [
            ChangeKind.RELATIONSHIP_REMOVED,
            ChangeKind.RELATIONSHIP_ADDED,
        ]
        assert changes[0].old_value == old.relationships["orderCustomer"]
        assert changes[1].new_value == new.relationships["orderCustomer"]


class TestComparisonResult:
    """Tests for result aggregates."""

    def test_emission_order(self):
        old = make_snapshot({"b": {"x": "string"}, "c": {}, "a": {"gone": "string"}})
        new = make_snapshot({"b": {"x": "number"}, "d": {}, "a": {"new": "string"}})

        kinds = [(c.kind, c.entity) for c in Comparator().compare(old, new).changes]

        assert kinds == [
            (ChangeKind.ENTITY_ADDED, "d"),
            (ChangeKind.ENTITY_REMOVED, "c"),
            (ChangeKind.FIELD_ADDED, "a"),
            (ChangeKind.FIELD_REMOVED, "a"),
            (ChangeKind.FIELD_MODIFIED, "b"),
        ]

    def test_summary_counts_zero_filled(self):
        old = make_snapshot({"orders": {"total": "number"}})
        new = make_snapshot({"orders": {}})

        counts = compare_snapshots(old, new).summary_counts

        assert set(counts) == set(ChangeKind)
        assert counts[ChangeKind.FIELD_REMOVED] == 1
        assert counts[ChangeKind.ENTITY_ADDED] == 0

    def test_gating_holds_without_breaking_changes(self):
        old = make_snapshot({"orders": {}})
        new = make_snapshot({"orders": {"note": "string.optional"}})

        result = compare_snapshots(old, new)

        assert result.has_changes
        assert result.breaking_changes == []
        assert not result.migration_required

    def test_breaking_changes_keep_order(self):
        old = make_snapshot({"a": {"x": "string"}, "b": {"y": "string"}})
        new = make_snapshot({"a": {}, "b": {}})
        paths = [c.path for c in compare_snapshots(old, new).breaking_changes]
        assert paths == ["a.x", "b.y"]

    def test_to_dict(self):
        old = make_snapshot({"orders": {"total": "number"}}, version="v1")
        new = make_snapshot({"orders": {}}, version="v2")

        data = compare_snapshots(old, new).to_dict()

        assert data["old_version"] == "v1"
        assert data["migration_required"] is True
        assert data["summary"]["field_removed"] == 1
        assert data["changes"][0]["old_value"]["type"] == "number"

    def test_to_jsonable(self):
        snapshot = make_snapshot({"orders": {"total": "number"}})
        assert to_jsonable(snapshot.entities["orders"].fields["total"])["type"] == "number"
        assert to_jsonable(FieldType.NUMBER) == "number"
        assert to_jsonable(True) is True
