"""Multi-file layout: one file per relation and interning table.

Layout under the database root::

    relations/<relation>.<ext>
    interning/<table>.<ext>
    counters.<ext>

The counters file is written last, so its presence marks a complete store
and can be checked without loading anything. A store is first written to a
sibling ``.staging`` directory and then published by renaming, so the root
always holds either the previous or the new store.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from corpusdb.core.exceptions import CorruptStoreError, StoreNotFoundError
from corpusdb.core.schema import DatabaseSchema, default_schema
from corpusdb.core.storage.codec import (
    CountersRecord,
    InterningRecord,
    RelationRecord,
    encoding_for,
    read_file,
    write_file,
)
from corpusdb.core.storage.files import (
    check_fingerprint,
    check_references,
    restore_counters,
    restore_interning_table,
    restore_relation,
)
from corpusdb.core.tables import Counters, InterningTable, Tables
from corpusdb.core.tables.relation import Fact

logger = logging.getLogger(__name__)

RELATIONS_DIR = "relations"
INTERNING_DIR = "interning"
COUNTERS_FILE = "counters"

_STAGING_SUFFIX = ".staging"
_OLD_SUFFIX = ".old"


def _check_ext(ext: str) -> str:
    encoding_for(Path(f"{COUNTERS_FILE}.{ext}"))
    return ext


def counters_path(database_root: Path, ext: str = "msgpack") -> Path:
    return database_root / f"{COUNTERS_FILE}.{_check_ext(ext)}"


def is_complete_multifile(database_root: Path, ext: str = "msgpack") -> bool:
    """True if a multi-file store was completely written to ``database_root``."""
    return counters_path(database_root, ext).is_file()


def store_multifile(
    tables: Tables,
    database_root: Path,
    ext: str = "msgpack",
    extra_files: Mapping[str, Any] | None = None,
) -> None:
    """Publish ``tables`` under ``database_root``.

    ``extra_files`` maps file names to objects stored next to the tables;
    they are published together with them.
    """
    _check_ext(ext)
    staging = database_root.with_name(database_root.name + _STAGING_SUFFIX)
    old = database_root.with_name(database_root.name + _OLD_SUFFIX)
    if staging.exists():
        shutil.rmtree(staging)

    for name, relation in tables.relations.items():
        write_file(
            staging / RELATIONS_DIR / f"{name}.{ext}",
            RelationRecord(schema=tables.fingerprint, relation=name, facts=relation.as_list()),
        )
    for name, table in tables.interning_tables.items():
        write_file(
            staging / INTERNING_DIR / f"{name}.{ext}",
            InterningRecord(schema=tables.fingerprint, table=name, values=table.as_list()),
        )
    for file_name, obj in (extra_files or {}).items():
        write_file(staging / file_name, obj)
    write_file(
        counters_path(staging, ext),
        CountersRecord(schema=tables.fingerprint, counters=tables.counters.as_dict()),
    )

    if old.exists():
        shutil.rmtree(old)
    if database_root.exists():
        database_root.rename(old)
    staging.rename(database_root)
    if old.exists():
        shutil.rmtree(old)
    logger.info("Stored %r in %s", tables, database_root)


def recover_multifile(database_root: Path, ext: str = "msgpack") -> None:
    """Finish or roll back a publish that was interrupted between its renames."""
    if database_root.exists():
        return
    staging = database_root.with_name(database_root.name + _STAGING_SUFFIX)
    old = database_root.with_name(database_root.name + _OLD_SUFFIX)
    if is_complete_multifile(staging, ext):
        logger.warning("Completing interrupted publish of %s", database_root)
        staging.rename(database_root)
        if old.exists():
            shutil.rmtree(old)
    elif old.exists():
        logger.warning("Rolling back interrupted publish of %s", database_root)
        old.rename(database_root)


def load_multifile(
    database_root: Path, schema: DatabaseSchema | None = None, ext: str = "msgpack"
) -> Tables:
    """Load a complete multi-file store."""
    loader = Loader(database_root, schema, ext)
    if not database_root.is_dir():
        raise StoreNotFoundError(database_root, "Missing database directory")
    tables = Tables(loader.schema)
    tables.counters = loader.load_counters()
    for decl in loader.schema.interning_tables:
        tables.interning_tables[decl.name] = loader.load_interning_table(decl.name)
    for decl in loader.schema.relations:
        tables.relations[decl.name].extend(loader.load_relation(decl.name))
    check_references(tables, database_root)
    return tables


def load_multifile_or_default(
    database_root: Path, schema: DatabaseSchema | None = None, ext: str = "msgpack"
) -> Tables:
    """Load ``database_root``, or return an empty store if it does not exist.

    A directory without the completion marker is reported as corrupt rather
    than treated as empty.
    """
    recover_multifile(database_root, ext)
    if not database_root.exists():
        logger.debug("No database at %s, starting empty", database_root)
        return Tables(schema)
    if not is_complete_multifile(database_root, ext):
        raise CorruptStoreError(
            database_root, f"Missing completion marker {COUNTERS_FILE}.{ext} in"
        )
    return load_multifile(database_root, schema, ext)


class Loader:
    """Relation-granular access to a multi-file store.

    Analyses that need a handful of relations load only those files.
    """

    def __init__(
        self, database_root: Path, schema: DatabaseSchema | None = None, ext: str = "msgpack"
    ) -> None:
        self.database_root = database_root
        self.schema = schema if schema is not None else default_schema()
        self.ext = _check_ext(ext)
        self.fingerprint = self.schema.fingerprint()

    def relation_path(self, name: str) -> Path:
        self.schema.get_relation(name)
        return self.database_root / RELATIONS_DIR / f"{name}.{self.ext}"

    def interning_path(self, name: str) -> Path:
        self.schema.get_interning_table(name)
        return self.database_root / INTERNING_DIR / f"{name}.{self.ext}"

    def load_relation(self, name: str) -> list[Fact]:
        """All facts of one relation, in insertion order."""
        path = self.relation_path(name)
        record = read_file(path, RelationRecord)
        check_fingerprint(self.schema, self.fingerprint, record.schema, path)
        if record.relation != name:
            raise CorruptStoreError(
                path, f"Expected relation '{name}', found '{record.relation}' in"
            )
        return restore_relation(self.schema.get_relation(name), record.facts, path).as_list()

    def store_relation(self, name: str, facts: Iterable[Fact]) -> None:
        """Replace one relation file, e.g. with facts derived by an analysis."""
        path = self.relation_path(name)
        relation = restore_relation(self.schema.get_relation(name), facts, path)
        write_file(
            path,
            RelationRecord(
                schema=self.fingerprint,
                relation=name,
                facts=relation.as_list(),
            ),
        )

    def load_interning_table(self, name: str) -> InterningTable:
        path = self.interning_path(name)
        record = read_file(path, InterningRecord)
        check_fingerprint(self.schema, self.fingerprint, record.schema, path)
        if record.table != name:
            raise CorruptStoreError(path, f"Expected table '{name}', found '{record.table}' in")
        return restore_interning_table(self.schema.get_interning_table(name), record.values, path)

    def load_interning_table_as_pairs(self, name: str) -> list[tuple[int, Any]]:
        """``(key, value)`` pairs of one interning table."""
        return list(self.load_interning_table(name).items())

    def load_counters(self) -> Counters:
        path = counters_path(self.database_root, self.ext)
        record = read_file(path, CountersRecord)
        check_fingerprint(self.schema, self.fingerprint, record.schema, path)
        return restore_counters(self.schema, record.counters, path)
