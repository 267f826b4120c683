"""
Consistency analysis for schemaevo.

Single-snapshot quality checks (naming, typing, duplication and
relationship modeling) plus the standalone field validators.
"""

from .analyzer import (
    AnalysisReport,
    ConsistencyAnalyzer,
    EntityAnalysis,
    Inconsistency,
    InconsistencyKind,
    Severity,
    analyze_snapshot,
)
from .rules import (
    DEFAULT_RULES,
    AnalyzerRules,
    ValidationResult,
    validate_data_type,
    validate_field,
    validate_field_naming,
    validate_relationship,
)

__all__ = [
    "AnalysisReport",
    "ConsistencyAnalyzer",
    "EntityAnalysis",
    "Inconsistency",
    "InconsistencyKind",
    "Severity",
    "analyze_snapshot",
    "AnalyzerRules",
    "DEFAULT_RULES",
    "ValidationResult",
    "validate_data_type",
    "validate_field",
    "validate_field_naming",
    "validate_relationship",
]
