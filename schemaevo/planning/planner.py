"""
Migration planning for schemaevo.

Turns a ComparisonResult into a MigrationPlan: one Step per change
(through a fixed template per change kind), sorted for human review with
the riskiest steps first, plus a rollback plan.

Invariants:
    - Steps are stably sorted by priority (critical, high, medium, low);
      ties keep the comparator's emission order
    - rollback_plan[i] == steps[len(steps) - 1 - i].inverse_operation
    - requires_downtime is true iff any step requires downtime
    - A change that points at no element of either snapshot aborts
      planning with ComparisonResultInvalidError

Note:
    The plan is ordered for review, not for execution. An executor must
    derive its own safe order (typically additive steps before destructive
    ones) instead of running the steps as listed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import ComparisonResultInvalidError
from ..schema.compat import ChangeKind, ComparisonResult, Impact, SchemaChange, to_jsonable
from ..schema.types import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_MINUTES_PER_STEP = 5

FIELD_ATTRIBUTES = ("type", "optional", "indexed", "unique")


class Priority(Enum):
    """Review priority of a migration step."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class StepKind(Enum):
    """Kinds of migration steps."""

    FIELD_ADDITION = "field_addition"
    FIELD_REMOVAL = "field_removal"
    FIELD_MODIFICATION = "field_modification"
    ENTITY_ADDITION = "entity_addition"
    ENTITY_REMOVAL = "entity_removal"
    RELATIONSHIP_ADDITION = "relationship_addition"
    RELATIONSHIP_REMOVAL = "relationship_removal"


class OperationAction(Enum):
    """Schema operations a step can perform."""

    ADD_FIELD = "add_field"
    DROP_FIELD = "drop_field"
    ALTER_FIELD = "alter_field"
    CREATE_ENTITY = "create_entity"
    DROP_ENTITY = "drop_entity"
    CREATE_RELATIONSHIP = "create_relationship"
    DROP_RELATIONSHIP = "drop_relationship"


@dataclass(frozen=True)
class Operation:
    """A single schema operation.

    Attributes:
        action: What to do
        entity: Target entity
        field: Target field, for field operations
        relationship: Target relationship, for relationship operations
        attribute: Property being altered, for ALTER_FIELD
        value: Definition to create, or the property's target value
        previous: Property value before an ALTER_FIELD
    """

    action: OperationAction
    entity: str
    field: Optional[str] = None
    relationship: Optional[str] = None
    attribute: Optional[str] = None
    value: Optional[Any] = None
    previous: Optional[Any] = None

    def describe(self) -> str:
        """Human-readable form, e.g. 'alter_field orders.total: optional False -> True'."""
        if self.relationship:
            target = f"relationship {self.relationship} ({self.entity})"
        elif self.field:
            target = f"{self.entity}.{self.field}"
        else:
            target = self.entity
        text = f"{self.action.value} {target}"
        if self.action is OperationAction.ALTER_FIELD:
            text += f": {self.attribute} {_display(self.previous)} -> {_display(self.value)}"
        return text

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"action": self.action.value, "entity": self.entity}
        for key in ("field", "relationship", "attribute"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.value is not None:
            result["value"] = to_jsonable(self.value)
        if self.previous is not None:
            result["previous"] = to_jsonable(self.previous)
        return result

    def __str__(self) -> str:
        return self.describe()


def _display(value: Any) -> str:
    return str(value.value) if isinstance(value, Enum) else str(value)


@dataclass(frozen=True)
class MigrationStep:
    """One forward/inverse operation pair of a migration plan."""

    id: str
    description: str
    kind: StepKind
    entity: str
    priority: Priority
    requires_downtime: bool
    forward_operation: Operation
    inverse_operation: Operation
    field: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "kind": self.kind.value,
            "entity": self.entity,
            "priority": self.priority.value,
            "requires_downtime": self.requires_downtime,
            "forward_operation": self.forward_operation.to_dict(),
            "inverse_operation": self.inverse_operation.to_dict(),
        }
        if self.field is not None:
            result["field"] = self.field
        return result


@dataclass(frozen=True)
class MigrationPlan:
    """Review-ordered migration plan with its rollback sequence.

    Build through MigrationPlan.from_steps() so that the derived
    attributes always agree with the steps.
    """

    steps: Tuple[MigrationStep, ...]
    estimated_duration: int
    requires_downtime: bool
    rollback_plan: Tuple[Operation, ...]

    @classmethod
    def from_steps(
        cls,
        steps: Sequence[MigrationStep],
        minutes_per_step: int = DEFAULT_MINUTES_PER_STEP,
    ) -> MigrationPlan:
        steps = tuple(steps)
        return cls(
            steps=steps,
            estimated_duration=len(steps) * minutes_per_step,
            requires_downtime=any(step.requires_downtime for step in steps),
            rollback_plan=tuple(step.inverse_operation for step in reversed(steps)),
        )

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "estimated_duration_minutes": self.estimated_duration,
            "requires_downtime": self.requires_downtime,
            "rollback_plan": [op.to_dict() for op in self.rollback_plan],
        }


StepTemplate = Callable[[SchemaChange], MigrationStep]


def _field_removal(change: SchemaChange) -> MigrationStep:
    return MigrationStep(
        id=f"remove_field_{change.entity}_{change.field}",
        description=change.description,
        kind=StepKind.FIELD_REMOVAL,
        entity=change.entity,
        field=change.field,
        priority=Priority.CRITICAL,
        requires_downtime=True,
        forward_operation=Operation(OperationAction.DROP_FIELD, change.entity, field=change.field),
        inverse_operation=Operation(
            OperationAction.ADD_FIELD, change.entity, field=change.field, value=change.old_value
        ),
    )


def _field_addition(change: SchemaChange) -> MigrationStep:
    return MigrationStep(
        id=f"add_field_{change.entity}_{change.field}",
        description=change.description,
        kind=StepKind.FIELD_ADDITION,
        entity=change.entity,
        field=change.field,
        priority=Priority.LOW,
        requires_downtime=False,
        forward_operation=Operation(
            OperationAction.ADD_FIELD, change.entity, field=change.field, value=change.new_value
        ),
        inverse_operation=Operation(OperationAction.DROP_FIELD, change.entity, field=change.field),
    )


def _field_modification(change: SchemaChange) -> MigrationStep:
    breaking = change.impact is Impact.BREAKING
    return MigrationStep(
        id=f"modify_field_{change.entity}_{change.field}_{change.attribute}",
        description=change.description,
        kind=StepKind.FIELD_MODIFICATION,
        entity=change.entity,
        field=change.field,
        priority=Priority.HIGH if breaking else Priority.MEDIUM,
        requires_downtime=breaking,
        forward_operation=Operation(
            OperationAction.ALTER_FIELD,
            change.entity,
            field=change.field,
            attribute=change.attribute,
            value=change.new_value,
            previous=change.old_value,
        ),
        inverse_operation=Operation(
            OperationAction.ALTER_FIELD,
            change.entity,
            field=change.field,
            attribute=change.attribute,
            value=change.old_value,
            previous=change.new_value,
        ),
    )


def _entity_removal(change: SchemaChange) -> MigrationStep:
    return MigrationStep(
        id=f"remove_entity_{change.entity}",
        description=change.description,
        kind=StepKind.ENTITY_REMOVAL,
        entity=change.entity,
        priority=Priority.CRITICAL,
        requires_downtime=True,
        forward_operation=Operation(OperationAction.DROP_ENTITY, change.entity),
        inverse_operation=Operation(
            OperationAction.CREATE_ENTITY, change.entity, value=change.old_value
        ),
    )


def _entity_addition(change: SchemaChange) -> MigrationStep:
    return MigrationStep(
        id=f"add_entity_{change.entity}",
        description=change.description,
        kind=StepKind.ENTITY_ADDITION,
        entity=change.entity,
        priority=Priority.LOW,
        requires_downtime=False,
        forward_operation=Operation(
            OperationAction.CREATE_ENTITY, change.entity, value=change.new_value
        ),
        inverse_operation=Operation(OperationAction.DROP_ENTITY, change.entity),
    )


def _relationship_removal(change: SchemaChange) -> MigrationStep:
    return MigrationStep(
        id=f"remove_relationship_{change.relationship}",
        description=change.description,
        kind=StepKind.RELATIONSHIP_REMOVAL,
        entity=change.entity,
        priority=Priority.CRITICAL,
        requires_downtime=True,
        forward_operation=Operation(
            OperationAction.DROP_RELATIONSHIP, change.entity, relationship=change.relationship
        ),
        inverse_operation=Operation(
            OperationAction.CREATE_RELATIONSHIP,
            change.entity,
            relationship=change.relationship,
            value=change.old_value,
        ),
    )


def _relationship_addition(change: SchemaChange) -> MigrationStep:
    return MigrationStep(
        id=f"add_relationship_{change.relationship}",
        description=change.description,
        kind=StepKind.RELATIONSHIP_ADDITION,
        entity=change.entity,
        priority=Priority.LOW,
        requires_downtime=False,
        forward_operation=Operation(
            OperationAction.CREATE_RELATIONSHIP,
            change.entity,
            relationship=change.relationship,
            value=change.new_value,
        ),
        inverse_operation=Operation(
            OperationAction.DROP_RELATIONSHIP, change.entity, relationship=change.relationship
        ),
    )


STEP_TEMPLATES: Dict[ChangeKind, StepTemplate] = {
    ChangeKind.FIELD_REMOVED: _field_removal,
    ChangeKind.FIELD_ADDED: _field_addition,
    ChangeKind.FIELD_MODIFIED: _field_modification,
    ChangeKind.ENTITY_REMOVED: _entity_removal,
    ChangeKind.ENTITY_ADDED: _entity_addition,
    ChangeKind.RELATIONSHIP_REMOVED: _relationship_removal,
    ChangeKind.RELATIONSHIP_ADDED: _relationship_addition,
}


class MigrationPlanner:
    """Synthesizes review-ordered migration plans from comparison results.

    Attributes:
        minutes_per_step: Flat duration estimate per step
        templates: Change kind to step template mapping; kinds without a
            template produce no step

    Example:
        >>> plan = MigrationPlanner().plan(compare_snapshots(v1, v2))
        >>> for op in plan.rollback_plan:
        ...     print(op.describe())
    """

    def __init__(
        self,
        minutes_per_step: int = DEFAULT_MINUTES_PER_STEP,
        templates: Optional[Dict[ChangeKind, StepTemplate]] = None,
    ) -> None:
        self.minutes_per_step = minutes_per_step
        self.templates = dict(STEP_TEMPLATES if templates is None else templates)

    def plan(self, comparison: ComparisonResult) -> MigrationPlan:
        """Build a migration plan.

        Args:
            comparison: Result of comparing two snapshots

        Returns:
            MigrationPlan with steps sorted critical-first

        Raises:
            ComparisonResultInvalidError: If a change references an entity,
                field or relationship absent from both snapshots
        """
        for change in comparison.changes:
            _validate_change(change, comparison.old_snapshot, comparison.new_snapshot)

        steps: List[MigrationStep] = []
        for change in comparison.changes:
            template = self.templates.get(change.kind)
            if template is None:
                logger.debug(f"No step template for {change.kind.value}, skipping {change.path}")
                continue
            steps.append(template(change))

        steps.sort(key=lambda step: step.priority.rank)
        plan = MigrationPlan.from_steps(steps, self.minutes_per_step)
        logger.info(
            f"Planned {len(plan.steps)} step(s), ~{plan.estimated_duration} min, "
            f"downtime={'yes' if plan.requires_downtime else 'no'}"
        )
        return plan


def plan_migration(
    comparison: ComparisonResult,
    minutes_per_step: int = DEFAULT_MINUTES_PER_STEP,
) -> MigrationPlan:
    """Convenience wrapper around MigrationPlanner().plan()."""
    return MigrationPlanner(minutes_per_step=minutes_per_step).plan(comparison)


def _validate_change(change: SchemaChange, old: Snapshot, new: Snapshot) -> None:
    """Check that a change points at real elements of old or new."""

    def invalid(reason: str) -> ComparisonResultInvalidError:
        return ComparisonResultInvalidError(
            reason, kind=change.kind.value, entity=change.entity, field_name=change.field
        )

    if change.entity not in old.entities and change.entity not in new.entities:
        raise invalid(f"entity '{change.entity}' exists in neither snapshot")

    if change.kind.is_field_change:
        if not change.field:
            raise invalid(f"{change.kind.value} change on '{change.entity}' has no field")
        in_old = change.entity in old.entities and change.field in old.entities[change.entity].fields
        in_new = change.entity in new.entities and change.field in new.entities[change.entity].fields
        if not (in_old or in_new):
            raise invalid(f"field '{change.entity}.{change.field}' exists in neither snapshot")
        if change.kind is ChangeKind.FIELD_MODIFIED and change.attribute not in FIELD_ATTRIBUTES:
            raise invalid(f"unknown field attribute '{change.attribute}'")

    if change.kind.is_relationship_change:
        name = change.relationship
        if not name or (name not in old.relationships and name not in new.relationships):
            raise invalid(f"relationship '{name}' exists in neither snapshot")
