"""
Schema CLI tool for schemaevo.

This tool analyzes schema descriptions and plans their evolution:
- analyze: Report consistency problems in a schema
- health-check: Score a schema and list the top recommendations
- snapshot: Export a schema as a checksummed snapshot (file or store)
- validate: Check a single "fieldName:dataType" pair
- diff: Show differences between two schemas
- plan: Build a migration plan with rollback for a schema change

Usage:
    schemaevo analyze --schema schema.yaml
    schemaevo snapshot --schema schema.yaml --key production
    schemaevo diff --baseline production --new schema.yaml --fail-on-breaking
    schemaevo plan --old schema.v1.yaml --new schema.v2.yaml --format json

Inputs given with --schema/--old/--new may be schema descriptions
(.yaml/.yml/.json) or snapshot files written by the snapshot command.

Invariants:
    - Exit code 0 on success, 1 on schema errors (and on breaking changes
      with --fail-on-breaking), 2 on usage errors
    - Validation issues and unknown --entity names are reported, not failed
    - JSON output is the to_dict() form of the result types

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from .. import report
from ..analysis import AnalysisReport, ConsistencyAnalyzer, validate_field
from ..config import Settings, get_settings, setup_logging
from ..errors import SchemaEvoError, SnapshotIntegrityError
from ..planning import MigrationPlan, MigrationPlanner
from ..schema import (
    Comparator,
    ComparisonResult,
    Snapshot,
    SnapshotBuilder,
    verify_checksum,
)
from ..schema.format import read_document
from ..store import FileSnapshotStore

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI tool for schema evolution.

    Provides commands for:
    - Loading schemas or snapshots from files and from the snapshot store
    - Analyzing, diffing and planning

    Example:
        >>> cli = SchemaCLI(get_settings())
        >>> result = cli.diff(old_path="schema.v1.yaml", new_path="schema.v2.yaml")
        >>> plan = cli.plan(result)
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.store = FileSnapshotStore(settings.snapshot_dir)
        self.builder = SnapshotBuilder()

    def load_snapshot(self, path: str, version: Optional[str] = None) -> Snapshot:
        """Load a schema description or a snapshot file as a Snapshot.

        Args:
            path: Description (.yaml/.yml/.json) or snapshot (.json) file
            version: Version label for descriptions (default: file stem)

        Returns:
            Snapshot instance
        """
        data = read_document(path)
        if not Snapshot.looks_like_snapshot(data):
            return self.builder.build(data or {}, version=version or Path(path).stem)

        try:
            snapshot = Snapshot.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            raise SnapshotIntegrityError(f"Cannot read snapshot {path}: {e}") from e
        if not verify_checksum(snapshot):
            raise SnapshotIntegrityError(
                f"Snapshot {path} does not match its checksum",
                expected_checksum=snapshot.checksum,
            )
        return snapshot

    def load_baseline(self, key: str) -> Snapshot:
        """Load a stored baseline; an absent key is an empty baseline."""
        snapshot = self.store.load(key)
        if snapshot is None:
            return Snapshot.empty(version=key)
        return snapshot

    def analyze(self, schema_path: str) -> AnalysisReport:
        return ConsistencyAnalyzer().analyze(self.load_snapshot(schema_path))

    def snapshot(self, schema_path: str, version: str) -> Snapshot:
        return self.load_snapshot(schema_path, version=version)

    def diff(
        self,
        new_path: str,
        old_path: Optional[str] = None,
        baseline: Optional[str] = None,
    ) -> ComparisonResult:
        """Compare a baseline (file or stored key) with a new schema.

        Args:
            new_path: New schema description or snapshot file
            old_path: Old schema description or snapshot file
            baseline: Snapshot store key, used when old_path is not given

        Returns:
            ComparisonResult
        """
        if old_path is not None:
            old = self.load_snapshot(old_path)
        else:
            old = self.load_baseline(baseline or "baseline")
        new = self.load_snapshot(new_path)
        return Comparator().compare(old, new)

    def plan(self, result: ComparisonResult) -> MigrationPlan:
        return MigrationPlanner(minutes_per_step=self.settings.minutes_per_step).plan(result)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemaevo", description="Schema analysis and migration planning tool"
    )
    parser.add_argument("--log-level", help="Log level (default: SCHEMAEVO_LOG_LEVEL or WARNING)")
    parser.add_argument("--snapshot-dir", help="Snapshot store directory")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Report schema inconsistencies")
    analyze_parser.add_argument("--schema", "-s", help="Schema file (default: SCHEMAEVO_SCHEMA_PATH)")
    analyze_parser.add_argument("--entity", help="Only show this entity")
    analyze_parser.add_argument(
        "--critical-only", action="store_true", help="Only show high-severity findings"
    )
    analyze_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Include per-entity breakdown"
    )
    analyze_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    # health-check command
    health_parser = subparsers.add_parser("health-check", help="Score schema health")
    health_parser.add_argument("--schema", "-s", help="Schema file")
    health_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    # snapshot command
    snapshot_parser = subparsers.add_parser("snapshot", help="Export schema snapshot")
    snapshot_parser.add_argument("--schema", "-s", help="Schema file")
    snapshot_parser.add_argument("--version", help="Version label (default: today's date)")
    snapshot_parser.add_argument("--key", "-k", help="Save to the snapshot store under this key")
    snapshot_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a fieldName:dataType pair")
    validate_parser.add_argument("field", metavar="FIELD:TYPE", help='e.g. "createdAt:date"')

    # diff and plan commands share their inputs
    for name, help_text in (
        ("diff", "Show differences between schemas"),
        ("plan", "Build a migration plan between schemas"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        source = sub.add_mutually_exclusive_group(required=True)
        source.add_argument("--old", help="Old schema or snapshot file")
        source.add_argument("--baseline", "-b", help="Snapshot store key of the baseline")
        sub.add_argument("--new", help="New schema file (default: SCHEMAEVO_SCHEMA_PATH)")
        sub.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
        if name == "diff":
            sub.add_argument(
                "--fail-on-breaking",
                action="store_true",
                help="Exit with code 1 when breaking changes are found",
            )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for schema tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.snapshot_dir:
        overrides["snapshot_dir"] = args.snapshot_dir
    settings = get_settings(**overrides)
    setup_logging(settings)

    cli = SchemaCLI(settings)
    try:
        return _run(cli, args)
    except SchemaEvoError as e:
        logger.debug(f"{e.code}: {e.details}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _run(cli: SchemaCLI, args: argparse.Namespace) -> int:
    schema_path = getattr(args, "schema", None) or cli.settings.schema_path

    if args.command == "analyze":
        analysis = cli.analyze(schema_path)
        if args.entity:
            entity = analysis.get_entity(args.entity)
            if entity is None:
                print(f"Entity '{args.entity}' not found", file=sys.stderr)
                return 0
            if args.format == "json":
                print(report.to_json(entity.to_dict()))
            else:
                print(report.format_entity(entity))
        elif args.critical_only:
            if args.format == "json":
                print(report.to_json([i.to_dict() for i in analysis.critical_issues]))
            else:
                print(report.format_critical_issues(analysis))
        elif args.format == "json":
            print(report.to_json(analysis.to_dict()))
        else:
            print(report.format_analysis(analysis, verbose=args.verbose))
        return 0

    if args.command == "health-check":
        health = report.HealthCheck.from_report(cli.analyze(schema_path))
        if args.format == "json":
            print(report.to_json(health.to_dict()))
        else:
            print(report.format_health(health))
        return 0

    if args.command == "snapshot":
        snapshot = cli.snapshot(schema_path, version=args.version or date.today().isoformat())
        output = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True)
        if args.key:
            path = cli.store.save(snapshot, args.key)
            print(f"Snapshot saved to {path}", file=sys.stderr)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(output + "\n")
            print(f"Snapshot exported to {args.output}", file=sys.stderr)
        if not args.key and not args.output:
            print(output)
        return 0

    if args.command == "validate":
        result = validate_field(args.field)
        print(report.format_validation(args.field, result))
        return 0

    new_path = args.new or cli.settings.schema_path
    result = cli.diff(new_path, old_path=args.old, baseline=args.baseline)

    if args.command == "diff":
        if args.format == "json":
            print(report.to_json(result.to_dict()))
        else:
            print(report.format_comparison(result))
        if args.fail_on_breaking and result.migration_required:
            return 1
        return 0

    plan = cli.plan(result)
    if args.format == "json":
        print(report.to_json(plan.to_dict()))
    else:
        print(report.format_plan(plan))
    return 0


if __name__ == "__main__":
    sys.exit(main())
