"""
Integration tests for the schemaevo CLI.

Tests cover:
- Every command end to end through main(argv)
- Snapshot store baselines (present and absent)
- Exit codes for success, schema errors and usage errors
"""

import json
import logging

import pytest
import yaml

from schemaevo.tools.schema_cli import main

V1 = {
    "entities": {
        "orders": {
            "orderNumber": {"type": "string", "unique": True, "indexed": True},
            "total": {"type": "number"},
            "createdat": {"type": "date"},
        },
        "customers": {"email": "string.indexed"},
    },
    "relationships": {
        "orderCustomer": {
            "forward": {"entity": "orders", "cardinality": "one", "label": "customer"},
            "reverse": {"entity": "customers", "cardinality": "many", "label": "orders"},
        }
    },
}

V2 = {
    "entities": {
        "orders": {
            "orderNumber": {"type": "string", "unique": True, "indexed": True},
            "createdAt": {"type": "date"},
            "note": "string.optional",
        },
        "customers": {"email": "string.indexed"},
    },
    "relationships": V1["relationships"],
}


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def schemas(tmp_path):
    v1 = tmp_path / "schema.v1.yaml"
    v2 = tmp_path / "schema.v2.json"
    v1.write_text(yaml.safe_dump(V1))
    v2.write_text(json.dumps(V2))
    return v1, v2


@pytest.fixture
def store_dir(tmp_path):
    return str(tmp_path / "store")


class TestAnalyzeCommands:
    """Tests for analyze and health-check."""

    def test_analyze_text(self, schemas, capsys):
        v1, _ = schemas
        assert main(["analyze", "--schema", str(v1)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Schema analysis (version schema.v1")
        assert "orders.createdat" in out

    def test_analyze_json(self, schemas, capsys):
        v1, _ = schemas
        assert main(["analyze", "--schema", str(v1), "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["total_entities"] == 2
        assert data["summary"]["field_naming"] == 1

    def test_analyze_entity(self, schemas, capsys):
        v1, _ = schemas
        assert main(["analyze", "--schema", str(v1), "--entity", "customers"]) == 0
        assert capsys.readouterr().out.startswith("Entity customers (1 fields)")

    def test_analyze_unknown_entity(self, schemas, capsys):
        """An unknown entity is reported, not treated as a failure."""
        v1, _ = schemas
        assert main(["analyze", "--schema", str(v1), "--entity", "ghosts"]) == 0
        captured = capsys.readouterr()
        assert "Entity 'ghosts' not found" in captured.err
        assert captured.out == ""

    def test_analyze_critical_only(self, schemas, capsys):
        v1, _ = schemas
        assert main(["analyze", "--schema", str(v1), "--critical-only"]) == 0
        assert "No critical issues found" in capsys.readouterr().out

    def test_health_check(self, schemas, capsys):
        v1, _ = schemas
        assert main(["health-check", "--schema", str(v1)]) == 0
        # one medium finding: 100 - 5 - 2
        assert "Schema health score: 93/100" in capsys.readouterr().out

    def test_schema_path_from_env(self, schemas, monkeypatch, capsys):
        v1, _ = schemas
        monkeypatch.setenv("SCHEMAEVO_SCHEMA_PATH", str(v1))
        assert main(["health-check", "--format", "json"]) == 0
        assert json.loads(capsys.readouterr().out)["score"] == 93


class TestValidateCommand:
    """Tests for validate."""

    def test_valid_field(self, capsys):
        assert main(["validate", "createdAt:date"]) == 0
        assert "valid" in capsys.readouterr().out

    def test_invalid_field_reports_issues(self, capsys):
        """Validation issues are a result, so the command still succeeds."""
        assert main(["validate", "created_at:string"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("created_at:string: 3 issue(s)")
        assert "Field name should use camelCase convention" in out
        assert "Field name should not contain underscores" in out
        assert 'Timestamp fields should end with "At" (e.g., createdAt)' in out


class TestSnapshotAndDiff:
    """Tests for snapshot, diff and plan."""

    def test_snapshot_to_stdout(self, schemas, capsys):
        v1, _ = schemas
        assert main(["snapshot", "--schema", str(v1), "--version", "2024-01-01"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["version"] == "2024-01-01"
        assert data["checksum"].startswith("sha256:")

    def test_snapshot_file_usable_as_diff_input(self, schemas, tmp_path, capsys):
        v1, v2 = schemas
        snapshot_file = tmp_path / "v1.snapshot.json"
        assert main(["snapshot", "--schema", str(v1), "--output", str(snapshot_file)]) == 0
        capsys.readouterr()

        assert main(["diff", "--old", str(snapshot_file), "--new", str(v2), "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        kinds = sorted(c["kind"] for c in data["changes"])
        assert kinds == ["field_added", "field_added", "field_removed", "field_removed"]

    def test_diff_text(self, schemas, capsys):
        v1, v2 = schemas
        assert main(["diff", "--old", str(v1), "--new", str(v2)]) == 0
        out = capsys.readouterr().out
        assert "[BREAKING] field_removed: orders.total" in out
        assert "Migration required: yes" in out

    def test_fail_on_breaking(self, schemas, capsys):
        v1, v2 = schemas
        assert main(["diff", "--old", str(v1), "--new", str(v2), "--fail-on-breaking"]) == 1
        assert main(["diff", "--old", str(v2), "--new", str(v2), "--fail-on-breaking"]) == 0

    def test_stored_baseline(self, schemas, store_dir, capsys):
        v1, v2 = schemas
        assert main(["--snapshot-dir", store_dir, "snapshot", "--schema", str(v1), "--key", "prod"]) == 0
        capsys.readouterr()

        assert main(
            ["--snapshot-dir", store_dir, "plan", "--baseline", "prod", "--new", str(v2), "--format", "json"]
        ) == 0
        plan = json.loads(capsys.readouterr().out)
        assert plan["requires_downtime"] is True
        assert plan["estimated_duration_minutes"] == 5 * len(plan["steps"])
        assert plan["steps"][0]["priority"] == "critical"
        assert [op["action"] for op in plan["rollback_plan"]][-1] == "add_field"

    def test_missing_baseline_is_empty(self, schemas, store_dir, capsys):
        _, v2 = schemas
        assert main(
            ["--snapshot-dir", store_dir, "diff", "--baseline", "prod", "--new", str(v2), "--format", "json"]
        ) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["summary"]["entity_added"] == 2
        assert data["migration_required"] is False

    def test_plan_text(self, schemas, capsys):
        v1, v2 = schemas
        assert main(["plan", "--old", str(v1), "--new", str(v2)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Migration plan: 4 step(s), ~20 min, downtime required")
        assert "Rollback plan:" in out


class TestErrors:
    """Tests for error exit codes."""

    def test_missing_schema_file(self, tmp_path, capsys):
        assert main(["analyze", "--schema", str(tmp_path / "nope.yaml")]) == 1
        assert capsys.readouterr().err.startswith("Error: Cannot read")

    def test_malformed_relationship(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        bad = {
            "entities": {"orders": {}},
            "relationships": {"r": {"forward": {"entity": "orders"}, "reverse": {"entity": "ghosts"}}},
        }
        path.write_text(yaml.safe_dump(bad))
        assert main(["analyze", "--schema", str(path)]) == 1
        assert "ghosts" in capsys.readouterr().err

    def test_tampered_snapshot_input(self, schemas, tmp_path, capsys):
        v1, v2 = schemas
        snapshot_file = tmp_path / "v1.snapshot.json"
        main(["snapshot", "--schema", str(v1), "--output", str(snapshot_file)])
        data = json.loads(snapshot_file.read_text())
        data["checksum"] = "sha256:0"
        snapshot_file.write_text(json.dumps(data))
        capsys.readouterr()

        assert main(["diff", "--old", str(snapshot_file), "--new", str(v2)]) == 1
        assert "checksum" in capsys.readouterr().err

    def test_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["diff", "--new", "x.yaml"])
        assert exc_info.value.code == 2

    def test_old_and_baseline_are_exclusive(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["plan", "--old", "a.yaml", "--baseline", "prod"])
        assert exc_info.value.code == 2
