"""
Unit tests for migration planning.

Tests cover:
- Step templates per change kind
- Priority ordering (stable)
- Rollback plan inversion
- Duration and downtime aggregates
- Rejection of invalid comparison results
"""

import pytest

from schemaevo.errors import ComparisonResultInvalidError
from schemaevo.planning.planner import (
    MigrationPlan,
    MigrationPlanner,
    OperationAction,
    Priority,
    StepKind,
    plan_migration,
)
from schemaevo.schema.compat import ChangeKind, ComparisonResult, Impact, SchemaChange, compare_snapshots
from schemaevo.schema.snapshot import build_snapshot
from schemaevo.schema.types import FieldType


def make_snapshot(entities, relationships=None, version="v"):
    return build_snapshot({"entities": entities, "relationships": relationships or {}}, version)


def plan_between(old_entities, new_entities, **kwargs):
    result = compare_snapshots(make_snapshot(old_entities), make_snapshot(new_entities))
    return MigrationPlanner(**kwargs).plan(result)


class TestStepTemplates:
    """Tests for per-kind step synthesis."""

    def test_field_removal(self):
        plan = plan_between({"orders": {"total": "number"}}, {"orders": {}})

        (step,) = plan.steps
        assert step.id == "remove_field_orders_total"
        assert step.kind is StepKind.FIELD_REMOVAL
        assert step.priority is Priority.CRITICAL
        assert step.requires_downtime
        assert step.forward_operation.action is OperationAction.DROP_FIELD
        assert step.inverse_operation.action is OperationAction.ADD_FIELD
        assert step.inverse_operation.value.type is FieldType.NUMBER

    def test_field_addition(self):
        plan = plan_between({"orders": {}}, {"orders": {"note": "string.optional"}})

        (step,) = plan.steps
        assert step.id == "add_field_orders_note"
        assert step.priority is Priority.LOW
        assert not step.requires_downtime
        assert step.forward_operation.action is OperationAction.ADD_FIELD
        assert step.inverse_operation.action is OperationAction.DROP_FIELD

    def test_breaking_modification(self):
        plan = plan_between({"orders": {"total": "string"}}, {"orders": {"total": "number"}})

        (step,) = plan.steps
        assert step.id == "modify_field_orders_total_type"
        assert step.priority is Priority.HIGH
        assert step.requires_downtime
        forward, inverse = step.forward_operation, step.inverse_operation
        assert (forward.previous, forward.value) == (FieldType.STRING, FieldType.NUMBER)
        assert (inverse.previous, inverse.value) == (FieldType.NUMBER, FieldType.STRING)

    def test_non_breaking_modification(self):
        plan = plan_between({"orders": {"sku": "string"}}, {"orders": {"sku": "string.indexed"}})

        (step,) = plan.steps
        assert step.id == "modify_field_orders_sku_indexed"
        assert step.priority is Priority.MEDIUM
        assert not step.requires_downtime
        assert not plan.requires_downtime

    def test_entity_steps(self):
        plan = plan_between({"stores": {}}, {"store": {}})

        by_kind = {s.kind: s for s in plan.steps}
        assert by_kind[StepKind.ENTITY_REMOVAL].priority is Priority.CRITICAL
        assert by_kind[StepKind.ENTITY_REMOVAL].inverse_operation.value.name == "stores"
        assert by_kind[StepKind.ENTITY_ADDITION].priority is Priority.LOW

    def test_relationship_steps(self):
        entities = {"orders": {}, "customers": {}}
        rel = {
            "orderCustomer": {
                "forward": {"entity": "orders", "cardinality": "one", "label": "customer"},
                "reverse": {"entity": "customers", "cardinality": "many", "label": "orders"},
            }
        }
        result = compare_snapshots(make_snapshot(entities, rel), make_snapshot(entities))

        (step,) = MigrationPlanner().plan(result).steps
        assert step.id == "remove_relationship_orderCustomer"
        assert step.kind is StepKind.RELATIONSHIP_REMOVAL
        assert step.priority is Priority.CRITICAL
        assert step.inverse_operation.action is OperationAction.CREATE_RELATIONSHIP


class TestOrdering:
    """Tests for review ordering."""

    def test_sorted_by_priority(self):
        plan = plan_between(
            {"orders": {"total": "string", "legacy": "string", "sku": "string"}},
            {"orders": {"total": "number", "note": "string", "sku": "string.indexed"}},
        )
        assert [s.priority for s in plan.steps] == [
            Priority.CRITICAL,
            Priority.HIGH,
            Priority.MEDIUM,
            Priority.LOW,
        ]

    def test_ties_keep_comparator_order(self):
        plan = plan_between({"a": {"x": "string"}, "b": {"y": "string"}}, {"a": {}, "b": {}})
        assert [s.id for s in plan.steps] == ["remove_field_a_x", "remove_field_b_y"]


class TestRollback:
    """Tests for the rollback plan."""

    def test_rollback_reverses_inverses(self):
        plan = plan_between(
            {"orders": {"total": "string", "legacy": "string"}, "stores": {}},
            {"orders": {"total": "number", "note": "string"}, "store": {}},
        )

        n = len(plan.steps)
        assert n == 5
        for i, operation in enumerate(plan.rollback_plan):
            assert operation == plan.steps[n - 1 - i].inverse_operation

    def test_empty_plan(self):
        snapshot = make_snapshot({"orders": {"total": "number"}})
        plan = plan_migration(compare_snapshots(snapshot, snapshot))

        assert plan.is_empty
        assert plan.rollback_plan == ()
        assert plan.estimated_duration == 0
        assert not plan.requires_downtime


class TestAggregates:
    """Tests for plan-level attributes."""

    def test_duration_is_five_minutes_per_step(self):
        plan = plan_between({"orders": {"a": "string", "b": "string"}}, {"orders": {}})
        assert plan.estimated_duration == 10

    def test_custom_minutes_per_step(self):
        plan = plan_between({"orders": {"a": "string"}}, {"orders": {}}, minutes_per_step=12)
        assert plan.estimated_duration == 12

    def test_from_steps_derives_attributes(self):
        plan = plan_between({"orders": {"a": "string"}}, {"orders": {}})
        rebuilt = MigrationPlan.from_steps(plan.steps)
        assert rebuilt == plan

    def test_missing_template_skips_change(self):
        result = compare_snapshots(
            make_snapshot({"orders": {"a": "string"}}), make_snapshot({"orders": {"b": "string"}})
        )
        planner = MigrationPlanner(templates={})
        assert planner.plan(result).steps == ()

    def test_to_dict(self):
        plan = plan_between({"orders": {"total": "string"}}, {"orders": {"total": "number"}})
        data = plan.to_dict()
        assert data["estimated_duration_minutes"] == 5
        assert data["steps"][0]["forward_operation"] == {
            "action": "alter_field",
            "entity": "orders",
            "field": "total",
            "attribute": "type",
            "value": "number",
            "previous": "string",
        }
        assert data["rollback_plan"][0]["value"] == "string"

    def test_to_dict_serializes_field_specs(self):
        plan = plan_between({"orders": {"total": "number.indexed"}}, {"orders": {}})
        data = plan.to_dict()
        assert data["rollback_plan"][0]["action"] == "add_field"
        assert data["rollback_plan"][0]["value"] == {
            "name": "total",
            "type": "number",
            "optional": False,
            "indexed": True,
            "unique": False,
        }

    def test_describe(self):
        plan = plan_between({"orders": {"note": "string"}}, {"orders": {"note": "string.optional"}})
        assert plan.steps[0].forward_operation.describe() == (
            "alter_field orders.note: optional False -> True"
        )


class TestInvalidResults:
    """Tests for comparison results that reference nothing."""

    def _result(self, change):
        snapshot = make_snapshot({"orders": {"total": "number"}})
        return ComparisonResult(old_snapshot=snapshot, new_snapshot=snapshot, changes=(change,))

    def test_unknown_entity(self):
        change = SchemaChange(kind=ChangeKind.ENTITY_REMOVED, entity="ghosts", impact=Impact.BREAKING)
        with pytest.raises(ComparisonResultInvalidError) as exc_info:
            MigrationPlanner().plan(self._result(change))
        assert exc_info.value.code == "COMPARISON_RESULT_INVALID"

    def test_unknown_field(self):
        change = SchemaChange(
            kind=ChangeKind.FIELD_REMOVED, entity="orders", field="ghost", impact=Impact.BREAKING
        )
        with pytest.raises(ComparisonResultInvalidError, match="ghost"):
            MigrationPlanner().plan(self._result(change))

    def test_field_change_without_field(self):
        change = SchemaChange(kind=ChangeKind.FIELD_ADDED, entity="orders", impact=Impact.ENHANCEMENT)
        with pytest.raises(ComparisonResultInvalidError):
            MigrationPlanner().plan(self._result(change))

    def test_unknown_relationship(self):
        change = SchemaChange(
            kind=ChangeKind.RELATIONSHIP_REMOVED,
            entity="orders",
            relationship="ghostLink",
            impact=Impact.BREAKING,
        )
        with pytest.raises(ComparisonResultInvalidError, match="ghostLink"):
            MigrationPlanner().plan(self._result(change))

    def test_unknown_attribute(self):
        change = SchemaChange(
            kind=ChangeKind.FIELD_MODIFIED,
            entity="orders",
            field="total",
            attribute="precision",
            impact=Impact.BREAKING,
        )
        with pytest.raises(ComparisonResultInvalidError, match="precision"):
            MigrationPlanner().plan(self._result(change))
