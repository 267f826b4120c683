"""
schemaevo - schema evolution analysis and migration planning.

Pipeline:
    schema description ──▶ SnapshotBuilder ──▶ Snapshot(s)
                                                  │
                      ┌───────────────────────────┴──────────┐
                      ▼                                      ▼
             ConsistencyAnalyzer                       Comparator
                      │                                      │
                      ▼                                      ▼
               AnalysisReport                       ComparisonResult
                                                             │
                                                             ▼
                                                     MigrationPlanner
                                                             │
                                                             ▼
                                                      MigrationPlan

Invariants:
    - Every stage is a pure function of its inputs; no global state
    - Snapshots are immutable and carry an order-independent checksum
    - Findings and changes are data; only contract violations raise

How to change safely:
    - Compatibility tables (comparator) and rule tables (analyzer) decide
      what users see as breaking or wrong; change them with tests
"""

from ._version import __version__
from .analysis import AnalysisReport, ConsistencyAnalyzer, Inconsistency, analyze_snapshot
from .errors import (
    ComparisonResultInvalidError,
    MalformedRelationshipError,
    SchemaEvoError,
    SchemaFormatError,
    SnapshotIntegrityError,
)
from .planning import MigrationPlan, MigrationPlanner, plan_migration
from .schema import (
    Comparator,
    ComparisonResult,
    SchemaChange,
    Snapshot,
    SnapshotBuilder,
    build_snapshot,
    compare_snapshots,
)
from .store import FileSnapshotStore

__all__ = [
    "__version__",
    # Snapshots
    "Snapshot",
    "SnapshotBuilder",
    "build_snapshot",
    # Analysis
    "ConsistencyAnalyzer",
    "AnalysisReport",
    "Inconsistency",
    "analyze_snapshot",
    # Comparison
    "Comparator",
    "ComparisonResult",
    "SchemaChange",
    "compare_snapshots",
    # Planning
    "MigrationPlanner",
    "MigrationPlan",
    "plan_migration",
    # Persistence
    "FileSnapshotStore",
    # Errors
    "SchemaEvoError",
    "SchemaFormatError",
    "MalformedRelationshipError",
    "ComparisonResultInvalidError",
    "SnapshotIntegrityError",
]
