"""Integration tests for the command line."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from corpusdb.cli import app
from corpusdb.core.schema import DatabaseSchema, default_schema, save_schema
from corpusdb.core.storage import load_multifile, load_tables
from corpusdb.core.tables import Tables

runner = CliRunner()

QUIET = ["--log-level", "CRITICAL"]


@pytest.fixture
def env(temp_dir: Path, schema: DatabaseSchema, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the settings at the temporary directory and the small schema."""
    schema_path = temp_dir / "schema.json"
    save_schema(schema, schema_path)
    monkeypatch.setenv("CORPUSDB_SCHEMA_PATH", str(schema_path))
    monkeypatch.setenv("CORPUSDB_DATABASE_ROOT", str(temp_dir / "database"))
    monkeypatch.setenv("CORPUSDB_WORKSPACE_ROOT", str(temp_dir / "workspace"))
    return temp_dir


class TestUpdate:
    """Tests for the update command."""

    def test_update(self, env: Path, make_unit, schema: DatabaseSchema) -> None:
        make_unit([("a1", 1)]).save(env / "workspace" / "a" / "unit.msgpack")
        make_unit([("b1", 2)]).save(env / "workspace" / "b" / "unit.msgpack")

        result = runner.invoke(app, [*QUIET, "update"])

        assert result.exit_code == 0, result.output
        assert "Units merged: 2" in result.output
        assert len(load_multifile(env / "database", schema).relation("functions")) == 2

    def test_update_json(self, env: Path, make_unit) -> None:
        make_unit([("a1", 1)]).save(env / "workspace" / "a" / "unit.msgpack")
        (env / "workspace" / "b").mkdir(parents=True)
        (env / "workspace" / "b" / "unit.msgpack").write_bytes(b"garbage")

        result = runner.invoke(app, [*QUIET, "update", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["merged"] == ["a/unit.msgpack"]
        assert data["errors"][0].startswith("b/unit.msgpack:")

    def test_invariant_violation_exits(self, env: Path, schema: DatabaseSchema) -> None:
        big = Tables(schema)
        for _ in range(200):
            big.register("tiny")
        big.save(env / "workspace" / "x" / "unit.msgpack")
        big.save(env / "workspace" / "y" / "unit.msgpack")

        result = runner.invoke(app, [*QUIET, "update"])

        assert result.exit_code == 2
        assert "Invariant violated" in result.output
        assert not (env / "database").exists()


class TestMergeAndConvert:
    """Tests for the merge and convert commands."""

    def test_merge_into_file(self, env: Path, make_unit, schema: DatabaseSchema) -> None:
        make_unit([("a1", 1)]).save(env / "a.msgpack")
        make_unit([("b1", 2)]).save(env / "b.json")

        args = ["merge", str(env / "a.msgpack"), str(env / "b.json"), "-o", str(env / "out.json")]
        result = runner.invoke(app, [*QUIET, *args])

        assert result.exit_code == 0, result.output
        merged = load_tables(env / "out.json", schema)
        assert [f for f, _, _ in merged.relation("functions")] == [1, 2]

    def test_merge_into_directory(self, env: Path, make_unit, schema: DatabaseSchema) -> None:
        make_unit([("a1", 1)]).save(env / "a.msgpack")

        for _ in range(2):
            args = ["merge", str(env / "a.msgpack"), "-o", str(env / "out"), "-F", "json"]
            result = runner.invoke(app, [*QUIET, *args])
            assert result.exit_code == 0, result.output

        merged = load_multifile(env / "out", schema, "json")
        assert len(merged.relation("functions")) == 2

    def test_convert(self, env: Path, populated: Tables) -> None:
        populated.save(env / "unit.msgpack")

        result = runner.invoke(app, [*QUIET, "convert", str(env / "unit.msgpack"), str(env / "d")])
        assert result.exit_code == 0, result.output
        result = runner.invoke(app, [*QUIET, "convert", str(env / "d"), str(env / "unit.json")])
        assert result.exit_code == 0, result.output

        assert load_tables(env / "unit.json", populated.schema) == populated

    def test_missing_input(self, env: Path) -> None:
        result = runner.invoke(
            app, [*QUIET, "merge", str(env / "missing.msgpack"), "-o", str(env / "out.json")]
        )

        assert result.exit_code == 1
        assert "Missing file" in result.output


class TestInspection:
    """Tests for the stats, show, and schema commands."""

    def test_stats_json(self, env: Path, populated: Tables) -> None:
        populated.save(env / "unit.json")

        result = runner.invoke(app, [*QUIET, "stats", str(env / "unit.json"), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["relations"]["functions"] == 2
        assert data["counters"] == {"Function": 3, "Tiny": 1}

    def test_show_relation(self, env: Path, populated: Tables) -> None:
        populated.store_multifile(env / "database")

        result = runner.invoke(app, [*QUIET, "show", "calls", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["columns"] == ["caller", "callee"]
        assert data["rows"] == [[1, 0], [2, 1]]

    def test_show_resolved(self, env: Path, populated: Tables) -> None:
        populated.save(env / "unit.msgpack")

        args = ["show", "functions", str(env / "unit.msgpack"), "-r", "-n", "1", "--json"]
        result = runner.invoke(app, [*QUIET, *args])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total"] == 2
        assert data["rows"] == [[1, ["main", 1], "Green"]]

    def test_show_interning_table(self, env: Path, populated: Tables) -> None:
        populated.save(env / "unit.json")

        result = runner.invoke(app, [*QUIET, "show", "strings", str(env / "unit.json")])

        assert result.exit_code == 0, result.output
        assert "helper" in result.output

    def test_show_unknown_name(self, env: Path, populated: Tables) -> None:
        populated.save(env / "unit.json")

        result = runner.invoke(app, [*QUIET, "show", "nope", str(env / "unit.json")])

        assert result.exit_code == 1
        assert "Unknown interning table 'nope'" in result.output

    def test_schema(self, env: Path) -> None:
        result = runner.invoke(app, [*QUIET, "schema"])

        assert result.exit_code == 0, result.output
        assert "strings" in result.output
        assert "Interning order" in result.output

    def test_default_schema_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CORPUSDB_SCHEMA_PATH", raising=False)

        result = runner.invoke(app, [*QUIET, "schema", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["name"] == default_schema().name
