"""
Migration planning for schemaevo.

Review-ordered migration plans with forward/inverse operation pairs and
a rollback plan, synthesized from snapshot comparison results.
"""

from .planner import (
    DEFAULT_MINUTES_PER_STEP,
    STEP_TEMPLATES,
    MigrationPlan,
    MigrationPlanner,
    MigrationStep,
    Operation,
    OperationAction,
    Priority,
    StepKind,
    plan_migration,
)

__all__ = [
    "DEFAULT_MINUTES_PER_STEP",
    "STEP_TEMPLATES",
    "MigrationPlan",
    "MigrationPlanner",
    "MigrationStep",
    "Operation",
    "OperationAction",
    "Priority",
    "StepKind",
    "plan_migration",
]
