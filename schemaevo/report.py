"""
Report presenter for schemaevo.

Renders analysis reports, comparison results and migration plans as
plain text for terminals and CI logs. JSON output is produced from the
to_dict() methods of the result types through to_json().

How to change safely:
    - Keep the first line of each text report stable; CI jobs grep it
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .analysis.analyzer import AnalysisReport, EntityAnalysis, Inconsistency, Severity
from .analysis.rules import ValidationResult
from .planning.planner import MigrationPlan
from .schema.compat import ChangeKind, ComparisonResult

TOP_ISSUES_LIMIT = 5


def to_json(data: Any) -> str:
    """Serialize a to_dict() result for output."""
    return json.dumps(data, indent=2)


@dataclass(frozen=True)
class HealthCheck:
    """Single-number quality summary of an analysis.

    score = max(0, 100 - 10 * high - 5 * medium - 2 * total)
    """

    score: int
    total_issues: int
    high_issues: int
    medium_issues: int
    top_issues: Tuple[Inconsistency, ...]

    @classmethod
    def from_report(cls, report: AnalysisReport, limit: int = TOP_ISSUES_LIMIT) -> HealthCheck:
        counts = report.severity_counts
        total = len(report.inconsistencies)
        high = counts[Severity.HIGH]
        medium = counts[Severity.MEDIUM]
        score = max(0, 100 - 10 * high - 5 * medium - 2 * total)
        # sorted() is stable: equal severities keep analyzer order
        ranked = sorted(report.inconsistencies, key=lambda i: -i.severity.rank)
        return cls(
            score=score,
            total_issues=total,
            high_issues=high,
            medium_issues=medium,
            top_issues=tuple(ranked[:limit]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "total_issues": self.total_issues,
            "high_issues": self.high_issues,
            "medium_issues": self.medium_issues,
            "top_issues": [i.to_dict() for i in self.top_issues],
        }


def _finding_lines(finding: Inconsistency, indent: str = "  ") -> List[str]:
    return [f"{indent}{finding}", f"{indent}    fix: {finding.suggested_fix}"]


def format_analysis(report: AnalysisReport, verbose: bool = False) -> str:
    """Render an analysis report.

    Args:
        report: Analysis to render
        verbose: Also render the per-entity breakdown
    """
    counts = report.severity_counts
    lines = [
        f"Schema analysis (version {report.version}, {report.checksum})",
        f"  entities: {report.total_entities}  fields: {report.total_fields}  "
        f"relationships: {report.total_relationships}",
        f"  findings: {len(report.inconsistencies)} "
        f"(high {counts[Severity.HIGH]}, medium {counts[Severity.MEDIUM]}, "
        f"low {counts[Severity.LOW]})",
    ]
    for kind, n in report.summary.items():
        if n:
            lines.append(f"    {kind.value}: {n}")

    if report.inconsistencies:
        lines.append("")
        lines.append("Findings:")
        for finding in report.inconsistencies:
            lines.extend(_finding_lines(finding))
    else:
        lines.append("No inconsistencies found")

    if verbose:
        for entity in report.entities:
            lines.append("")
            lines.append(format_entity(entity))

    return "\n".join(lines)


def format_entity(entity: EntityAnalysis) -> str:
    """Render the breakdown of one entity."""
    lines = [f"Entity {entity.name} ({entity.field_count} fields)"]
    for spec in entity.fields:
        flags = [flag for flag in ("optional", "indexed", "unique") if getattr(spec, flag)]
        suffix = f" [{', '.join(flags)}]" if flags else ""
        lines.append(f"  {spec.name}: {spec.type.value}{suffix}")
    if entity.relationships:
        lines.append(f"  relationships: {', '.join(entity.relationships)}")
    for finding in entity.inconsistencies:
        lines.extend(_finding_lines(finding))
    return "\n".join(lines)


def format_critical_issues(report: AnalysisReport) -> str:
    """Render high-severity findings grouped by kind."""
    critical = report.critical_issues
    if not critical:
        return "No critical issues found"

    grouped: Dict[str, List[Inconsistency]] = {}
    for finding in critical:
        grouped.setdefault(finding.kind.value, []).append(finding)

    lines = [f"Critical issues: {len(critical)}"]
    for kind, findings in grouped.items():
        lines.append(f"  {kind} ({len(findings)}):")
        for finding in findings:
            lines.extend(_finding_lines(finding, indent="    "))
    return "\n".join(lines)


def format_health(health: HealthCheck) -> str:
    lines = [
        f"Schema health score: {health.score}/100",
        f"  issues: {health.total_issues} (high {health.high_issues}, "
        f"medium {health.medium_issues})",
    ]
    if health.top_issues:
        lines.append("Top recommendations:")
        for n, finding in enumerate(health.top_issues, start=1):
            lines.append(f"  {n}. {finding}")
            lines.append(f"     fix: {finding.suggested_fix}")
    return "\n".join(lines)


def format_comparison(result: ComparisonResult) -> str:
    """Render a comparison result in emission order."""
    header = f"Schema diff {result.old_snapshot.version} -> {result.new_snapshot.version}"
    if not result.has_changes:
        return f"{header}\nNo changes detected"

    lines = [
        header,
        f"Found {len(result.changes)} change(s), {len(result.breaking_changes)} breaking:",
    ]
    for change in result.changes:
        status = "BREAKING" if change.is_breaking else change.impact.value.upper()
        lines.append(f"  [{status}] {change.kind.value}: {change.path}")
        lines.append(f"          {change.description}")

    counts = result.summary_counts
    lines.append("Summary:")
    for kind in ChangeKind:
        if counts[kind]:
            lines.append(f"  {kind.value}: {counts[kind]}")
    lines.append(f"Migration required: {'yes' if result.migration_required else 'no'}")
    return "\n".join(lines)


def format_plan(plan: MigrationPlan) -> str:
    """Render a migration plan and its rollback sequence."""
    if plan.is_empty:
        return "Migration plan: nothing to do"

    lines = [
        f"Migration plan: {len(plan.steps)} step(s), ~{plan.estimated_duration} min, "
        f"downtime {'required' if plan.requires_downtime else 'not required'}",
    ]
    for n, step in enumerate(plan.steps, start=1):
        downtime = ", downtime" if step.requires_downtime else ""
        lines.append(f"  {n}. [{step.priority.value.upper()}{downtime}] {step.id}")
        lines.append(f"     {step.description}")
        lines.append(f"     forward: {step.forward_operation.describe()}")
        lines.append(f"     inverse: {step.inverse_operation.describe()}")

    lines.append("Rollback plan:")
    for n, operation in enumerate(plan.rollback_plan, start=1):
        lines.append(f"  {n}. {operation.describe()}")
    return "\n".join(lines)


def format_validation(field_spec: str, result: ValidationResult) -> str:
    if result.is_valid:
        return f"{field_spec}: valid"
    lines = [f"{field_spec}: {len(result.issues)} issue(s)"]
    lines.extend(f"  - {issue}" for issue in result.issues)
    return "\n".join(lines)
