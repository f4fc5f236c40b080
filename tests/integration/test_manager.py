"""Integration tests for the store manager."""

import logging
import shutil
from pathlib import Path

import pytest

from corpusdb.core.exceptions import CorruptStoreError, CounterOverflowError
from corpusdb.core.manager import StoreManager, get_manifest_path
from corpusdb.core.schema import DatabaseSchema
from corpusdb.core.storage import load_multifile
from corpusdb.core.tables import Tables
from corpusdb.settings import CorpusSettings


@pytest.fixture
def settings() -> CorpusSettings:
    return CorpusSettings(unit_suffix=".msgpack", corpus_format="msgpack", skip_dirs=["source"])


@pytest.fixture
def workspace(temp_dir: Path, make_unit) -> Path:
    """A workspace with two units and an extractor source tree."""
    root = temp_dir / "workspace"
    make_unit([("a1", 1), ("a2", 2)]).save(root / "crate_a" / "unit.msgpack")
    make_unit([("b1", 3)]).save(root / "crate_b" / "unit.msgpack")
    make_unit([("ignored", 9)]).save(root / "source" / "unit.msgpack")
    (root / "crate_b" / "notes.txt").write_text("not a unit")
    return root


def make_manager(
    temp_dir: Path, schema: DatabaseSchema, settings: CorpusSettings
) -> StoreManager:
    return StoreManager(temp_dir / "database", schema, settings)


class TestScan:
    """Tests for finding per-unit stores."""

    def test_scan_units(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, settings: CorpusSettings
    ) -> None:
        manager = make_manager(temp_dir, schema, settings)
        units = list(manager.scan_units(workspace))

        assert [u.unit_id for u in units] == ["crate_a/unit.msgpack", "crate_b/unit.msgpack"]
        assert units[0].path == workspace / "crate_a" / "unit.msgpack"


class TestUpdate:
    """Tests for merging a workspace into the corpus."""

    def test_first_update(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, settings: CorpusSettings
    ) -> None:
        manager = make_manager(temp_dir, schema, settings)
        report = manager.update(workspace)

        assert report.merged == ["crate_a/unit.msgpack", "crate_b/unit.msgpack"]
        assert report.unchanged == 0
        assert report.errors == []
        assert report.stats.relations["functions"] == 3

        assert manager.is_stored
        assert get_manifest_path(temp_dir / "database").is_file()
        corpus = load_multifile(temp_dir / "database", schema)
        assert [f for f, _, _ in corpus.relation("functions")] == [1, 2, 3]
        assert corpus.counters.value("Function") == 4

    def test_second_update_skips_merged_units(
        self,
        temp_dir: Path,
        workspace: Path,
        schema: DatabaseSchema,
        settings: CorpusSettings,
        make_unit,
    ) -> None:
        make_manager(temp_dir, schema, settings).update(workspace)
        make_unit([("c1", 4)]).save(workspace / "crate_c" / "unit.msgpack")

        manager = make_manager(temp_dir, schema, settings)
        report = manager.update(workspace)

        assert report.merged == ["crate_c/unit.msgpack"]
        assert report.unchanged == 2
        corpus = load_multifile(temp_dir / "database", schema)
        assert len(corpus.relation("functions")) == 4
        assert corpus.counters.value("Function") == 5

    def test_progress_callback(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, settings: CorpusSettings
    ) -> None:
        seen = []
        manager = make_manager(temp_dir, schema, settings)
        manager.update(workspace, on_progress=lambda unit, i, n: seen.append((unit.unit_id, i, n)))

        assert seen == [("crate_a/unit.msgpack", 1, 2), ("crate_b/unit.msgpack", 2, 2)]

    def test_corrupt_unit_is_skipped(
        self,
        temp_dir: Path,
        workspace: Path,
        schema: DatabaseSchema,
        settings: CorpusSettings,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        (workspace / "crate_a" / "unit.msgpack").write_bytes(b"\x00garbage")
        manager = make_manager(temp_dir, schema, settings)

        with caplog.at_level(logging.ERROR, logger="corpusdb"):
            report = manager.update(workspace)

        assert report.merged == ["crate_b/unit.msgpack"]
        assert len(report.errors) == 1
        assert report.errors[0].startswith("crate_a/unit.msgpack:")
        assert "Skipping unit crate_a/unit.msgpack" in caplog.text
        assert not manager.is_merged(next(manager.scan_units(workspace)))

    def test_unit_of_other_schema_is_skipped(
        self,
        temp_dir: Path,
        workspace: Path,
        schema: DatabaseSchema,
        settings: CorpusSettings,
    ) -> None:
        Tables().save(workspace / "crate_z" / "unit.msgpack")
        report = make_manager(temp_dir, schema, settings).update(workspace)

        assert len(report.merged) == 2
        assert report.errors[0].startswith("crate_z/unit.msgpack:")

    def test_invariant_violation_stops_the_run(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, settings: CorpusSettings
    ) -> None:
        big = Tables(schema)
        for _ in range(200):
            big.register("tiny")
        big.save(workspace / "crate_x" / "unit.msgpack")
        big.save(workspace / "crate_y" / "unit.msgpack")

        manager = make_manager(temp_dir, schema, settings)
        with pytest.raises(CounterOverflowError):
            manager.update(workspace)

        assert not (temp_dir / "database").exists()


class TestManifest:
    """Tests for the merged-units bookkeeping."""

    def test_missing_manifest_is_rebuilt(
        self,
        temp_dir: Path,
        workspace: Path,
        schema: DatabaseSchema,
        settings: CorpusSettings,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        make_manager(temp_dir, schema, settings).update(workspace)
        manifest = get_manifest_path(temp_dir / "database")
        manifest.unlink()

        with caplog.at_level(logging.WARNING, logger="corpusdb"):
            manager = make_manager(temp_dir, schema, settings)

        assert "Manifest" in caplog.text
        assert manager.merged_units == {"crate_a/unit.msgpack", "crate_b/unit.msgpack"}
        report = manager.update(workspace)
        assert report.merged == []
        assert manifest.is_file()

    def test_corrupt_manifest(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, settings: CorpusSettings
    ) -> None:
        make_manager(temp_dir, schema, settings).update(workspace)
        get_manifest_path(temp_dir / "database").write_text("[not a manifest")

        with pytest.raises(CorruptStoreError):
            make_manager(temp_dir, schema, settings)

    def test_manifest_without_corpus(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, settings: CorpusSettings
    ) -> None:
        make_manager(temp_dir, schema, settings).update(workspace)
        shutil.rmtree(temp_dir / "database")

        with pytest.raises(CorruptStoreError, match="corpus is missing"):
            make_manager(temp_dir, schema, settings)

    def test_corpus_without_unit_record(
        self, temp_dir: Path, schema: DatabaseSchema, settings: CorpusSettings, populated: Tables
    ) -> None:
        populated.store_multifile(temp_dir / "database")

        with pytest.raises(CorruptStoreError, match="no record of merged units"):
            make_manager(temp_dir, schema, settings)

    def test_manifest_path_is_outside_corpus(self, temp_dir: Path) -> None:
        assert get_manifest_path(temp_dir / "database") == temp_dir / "database.units.json"

    def test_json_corpus(
        self, temp_dir: Path, workspace: Path, schema: DatabaseSchema, make_unit
    ) -> None:
        settings = CorpusSettings(corpus_format="json")
        make_manager(temp_dir, schema, settings).update(workspace)

        assert (temp_dir / "database" / "counters.json").is_file()
        manager = make_manager(temp_dir, schema, settings)
        assert len(manager.tables.relation("functions")) == 3
