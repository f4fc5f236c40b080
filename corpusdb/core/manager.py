"""Store manager: fold per-unit stores from a workspace into the corpus."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path

import msgspec

from corpusdb.core.exceptions import CorruptStoreError, SchemaMismatchError, StoreError
from corpusdb.core.models import UnitRecord, UpdateReport
from corpusdb.core.schema import DatabaseSchema, default_schema
from corpusdb.core.storage import (
    is_complete_multifile,
    load_multifile_or_default,
    load_tables,
    read_file,
    store_multifile,
    write_file,
)
from corpusdb.core.tables import Tables
from corpusdb.settings import CorpusSettings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UnitRecord, int, int], None]

UNITS_FILE = "units.json"


class UnitsRecord(msgspec.Struct, frozen=True, kw_only=True, forbid_unknown_fields=True):
    """Identifiers of the units merged into a corpus."""

    units: list[str]


def get_manifest_path(database_root: Path) -> Path:
    """Manifest kept next to (not inside) the corpus directory."""
    return database_root.with_name(database_root.name + ".units.json")


class StoreManager:
    """Keeps a multi-file corpus and the list of units merged into it.

    Two records track merged units:

    - ``<database_root>/units.json`` is published atomically with the corpus
      and is authoritative.
    - The manifest ``<database_root>.units.json`` is deleted before a merge
      pass and rewritten only after the corpus was published. If it is
      missing, the previous run may have died mid-way and the list is rebuilt
      from the corpus.
    """

    def __init__(
        self,
        database_root: Path,
        schema: DatabaseSchema | None = None,
        settings: CorpusSettings | None = None,
    ) -> None:
        self.settings = settings if settings is not None else CorpusSettings()
        self.database_root = database_root
        self.schema = schema if schema is not None else default_schema()
        self.ext = self.settings.corpus_format
        self.manifest_path = get_manifest_path(database_root)

        self.database = load_multifile_or_default(database_root, self.schema, self.ext)
        self.merged_units = self._load_merged_units()

    def _load_merged_units(self) -> set[str]:
        if self.manifest_path.exists():
            record = read_file(self.manifest_path, UnitsRecord)
            if record.units and not self.database_root.exists():
                raise CorruptStoreError(
                    self.manifest_path, "Manifest lists merged units, but the corpus is missing:"
                )
            return set(record.units)

        if not self.database_root.exists():
            return set()

        logger.warning(
            "Manifest %s is missing; the last update may not have finished. "
            "Rebuilding it from %s",
            self.manifest_path,
            self.database_root,
        )
        units_path = self.database_root / UNITS_FILE
        if not units_path.exists():
            raise CorruptStoreError(units_path, "The corpus has no record of merged units:")
        record = read_file(units_path, UnitsRecord)
        return set(record.units)

    def scan_units(self, workspace_root: Path) -> Iterator[UnitRecord]:
        """Per-unit stores under ``workspace_root``, in a stable order."""
        skip = set(self.settings.skip_dirs)
        for dirpath, dirnames, filenames in os.walk(workspace_root):
            dirnames[:] = sorted(d for d in dirnames if d not in skip and not d.startswith("."))
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                if filename.endswith(self.settings.unit_suffix):
                    yield UnitRecord.from_path(workspace_root, Path(dirpath) / filename)

    def is_merged(self, unit: UnitRecord) -> bool:
        return unit.unit_id in self.merged_units

    def update(
        self, workspace_root: Path, on_progress: ProgressCallback | None = None
    ) -> UpdateReport:
        """Merge every unit that is not yet in the corpus, then publish the corpus.

        Units that fail to load are logged, reported, and left unmerged so a
        later run retries them. Invariant violations are not caught.
        """
        report = UpdateReport()
        units = list(self.scan_units(workspace_root))

        for i, unit in enumerate(units):
            logger.debug("Checking unit: %s", unit.unit_id)
            if self.is_merged(unit):
                logger.debug("Unit already merged: %s", unit.unit_id)
                report.unchanged += 1
            else:
                logger.info("Merging unit (%d): %s", len(report.merged), unit.unit_id)
                try:
                    self.merge_unit(unit, report)
                except (StoreError, SchemaMismatchError) as e:
                    logger.error("Skipping unit %s: %s", unit.unit_id, e)
                    report.errors.append(f"{unit.unit_id}: {e}")
            if on_progress:
                on_progress(unit, i + 1, len(units))

        logger.info("Merged %d units", len(report.merged))
        self.publish()
        return report

    def merge_unit(self, unit: UnitRecord, report: UpdateReport | None = None) -> None:
        """Load one per-unit store and merge it into the in-memory corpus."""
        unit_tables = load_tables(unit.path, self.schema)
        stats = self.database.merge(unit_tables)
        self.merged_units.add(unit.unit_id)
        if report is not None:
            report.merged.append(unit.unit_id)
            report.stats.add(stats)

    def publish(self) -> None:
        """Write the corpus, then the manifest.

        The manifest goes away first, so a crash in between leaves no manifest
        rather than one that claims units the corpus does not contain.
        """
        self.manifest_path.unlink(missing_ok=True)
        units = UnitsRecord(units=sorted(self.merged_units))
        store_multifile(
            self.database, self.database_root, self.ext, extra_files={UNITS_FILE: units}
        )
        write_file(self.manifest_path, units)

    @property
    def is_stored(self) -> bool:
        return is_complete_multifile(self.database_root, self.ext)

    @property
    def tables(self) -> Tables:
        return self.database
