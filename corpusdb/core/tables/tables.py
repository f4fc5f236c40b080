"""Tables: the aggregate of relations, counters, and interning tables."""

from __future__ import annotations

import math
from collections.abc import Hashable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from corpusdb.core.schema import (
    ColumnKind,
    CustomIdKind,
    DatabaseSchema,
    EnumKind,
    IncrementalIdKind,
    InternedIdKind,
    InterningTableDecl,
    PrimitiveKind,
    default_schema,
)
from corpusdb.core.schema.models import PRIMITIVE_TYPES
from corpusdb.core.tables.counters import Counters
from corpusdb.core.tables.interning import InterningTable
from corpusdb.core.tables.relation import Relation

if TYPE_CHECKING:
    from corpusdb.core.models import MergeStats

# Integers both encodings can hold.
INT_MIN = -(1 << 63)
UINT_MAX = (1 << 64) - 1


def check_scalar(kind: ColumnKind, value: Any, where: str) -> None:
    """Check a custom ID, enum, or primitive value against its declared type.

    Integer custom IDs are unsigned 64-bit hashes. Floats must be finite,
    since JSON has no way to write ``inf`` or ``nan``.
    """
    if isinstance(kind, CustomIdKind):
        if not isinstance(value, PRIMITIVE_TYPES[kind.id.type]) or isinstance(value, bool):
            raise TypeError(f"{where}: {kind.id.name} must be {kind.id.type}, got {value!r}")
        if isinstance(value, int) and not 0 <= value <= UINT_MAX:
            raise ValueError(f"{where}: {kind.id.name} {value} is outside 0..{UINT_MAX}")
    elif isinstance(kind, EnumKind):
        if value not in kind.enum.variants:
            raise ValueError(f"{where}: {value!r} is not a variant of {kind.enum.name}")
    elif isinstance(kind, PrimitiveKind):
        if not isinstance(value, PRIMITIVE_TYPES[kind.name]) or (
            isinstance(value, bool) and kind.name != "bool"
        ):
            raise TypeError(f"{where}: expected {kind.name}, got {value!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"{where}: {value!r} is not a finite float")
        if isinstance(value, int) and not INT_MIN <= value <= UINT_MAX:
            raise ValueError(f"{where}: {value} is outside {INT_MIN}..{UINT_MAX}")
    else:
        raise AssertionError(f"Unhandled column kind {kind!r}")


class Tables:
    """All facts of one compilation unit, or of the merged corpus.

    Facts are only added through the registration operations ``intern`` and
    ``register``; IDs are only generated through ``fresh``.
    """

    def __init__(self, schema: DatabaseSchema | None = None) -> None:
        self.schema = schema if schema is not None else default_schema()
        self.fingerprint = self.schema.fingerprint()
        self.counters = Counters(self.schema)
        self.interning_tables: dict[str, InterningTable] = {
            t.name: InterningTable(t.name, t.key_width) for t in self.schema.interning_tables
        }
        self.relations: dict[str, Relation] = {
            r.name: Relation(r.name, r.arity) for r in self.schema.relations
        }
        self._kinds: dict[str, ColumnKind] = {}

    def column_kind(self, type_name: str) -> ColumnKind:
        """Cached ``schema.column_kind``."""
        kind = self._kinds.get(type_name)
        if kind is None:
            kind = self.schema.column_kind(type_name)
            self._kinds[type_name] = kind
        return kind

    def relation(self, name: str) -> Relation:
        self.schema.get_relation(name)
        return self.relations[name]

    def interning_table(self, name: str) -> InterningTable:
        self.schema.get_interning_table(name)
        return self.interning_tables[name]

    # Counters

    def fresh(self, kind: str) -> int:
        """Generate a new ID of an incremental kind."""
        return self.counters.fresh(kind)

    def constant(self, kind: str, name: str) -> int:
        """Reserved value of a named constant of an incremental kind."""
        return self.counters.constant(kind, name)

    # Registration

    def intern(self, table: str, value: Any) -> int:
        """Intern ``value`` into ``table`` and return its key.

        Values whose type is itself interned are interned first, so callers
        pass leaf values (e.g. a ``str`` for a table of interned strings).
        """
        return self._intern(self.schema.get_interning_table(table), value)

    def register(self, relation: str, **columns: Any) -> tuple[int, ...]:
        """Record one fact in ``relation``.

        Every non-auto column is passed by keyword. Auto columns are filled
        with fresh IDs, which are returned in column order.
        """
        decl = self.schema.get_relation(relation)
        expected = {c.name for c in decl.columns if not c.auto}
        missing = expected - set(columns)
        unexpected = set(columns) - expected
        if missing or unexpected:
            parts = []
            if missing:
                parts.append(f"missing {sorted(missing)}")
            if unexpected:
                parts.append(f"unexpected {sorted(unexpected)}")
            raise TypeError(f"register('{relation}'): {', '.join(parts)}")

        prepared = {
            c.name: self._prepare(c.type, columns[c.name], f"{relation}.{c.name}")
            for c in decl.columns
            if not c.auto
        }
        fact: list[Any] = []
        generated: list[int] = []
        for column in decl.columns:
            if column.auto:
                value = self.counters.fresh(column.type)
                generated.append(value)
            else:
                value = prepared[column.name]
            fact.append(value)
        self.relations[relation].insert(tuple(fact))
        return tuple(generated)

    def resolve(self, table: str, key: int) -> Any:
        """Inverse of ``intern``: the leaf value stored under ``key``."""
        return self._resolve(self.schema.get_interning_table(table), key)

    def _intern(self, decl: InterningTableDecl, value: Any) -> int:
        if decl.is_tuple:
            types = decl.value_types
            if not isinstance(value, tuple) or len(value) != len(types):
                raise TypeError(
                    f"Interning table '{decl.name}' expects a tuple of {len(types)} values, "
                    f"got {value!r}"
                )
            stored: Hashable = tuple(
                self._prepare(t, v, f"{decl.name}[{i}]")
                for i, (t, v) in enumerate(zip(types, value))
            )
        else:
            stored = self._prepare(decl.value_types[0], value, decl.name)
        return self.interning_tables[decl.name].intern(stored)

    def _prepare(self, type_name: str, value: Any, where: str) -> Any:
        """Convert a caller value of ``type_name`` into its stored form."""
        kind = self.column_kind(type_name)
        if isinstance(kind, InternedIdKind):
            if kind.table.is_tuple and not isinstance(value, tuple):
                # An already interned key of a tuple table.
                table = self.interning_tables[kind.table.name]
                if not isinstance(value, int) or not 0 <= value < len(table):
                    raise ValueError(f"{where}: {value!r} is not a key of '{kind.table.name}'")
                return value
            return self._intern(kind.table, value)
        if isinstance(kind, IncrementalIdKind):
            limit = self.counters.value(kind.id.name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < limit:
                raise ValueError(f"{where}: {value!r} is not an issued {kind.id.name} ID")
            return value
        check_scalar(kind, value, where)
        return value

    def _resolve(self, decl: InterningTableDecl, key: int) -> Any:
        value = self.interning_tables[decl.name].lookup(key)
        if decl.is_tuple:
            return tuple(self._resolve_value(t, v) for t, v in zip(decl.value_types, value))
        return self._resolve_value(decl.value_types[0], value)

    def _resolve_value(self, type_name: str, value: Any) -> Any:
        kind = self.column_kind(type_name)
        if isinstance(kind, InternedIdKind):
            return self._resolve(kind.table, value)
        return value

    # Merge

    def merge(self, other: Tables) -> MergeStats:
        """Absorb ``other`` into this store. See ``corpusdb.core.tables.merge``."""
        from corpusdb.core.tables.merge import merge_tables

        return merge_tables(self, other)

    # Persistence

    def save(self, path: Path) -> None:
        """Save as a single file; the extension selects the encoding."""
        from corpusdb.core.storage import save_tables

        save_tables(self, path)

    @classmethod
    def load(cls, path: Path, schema: DatabaseSchema | None = None) -> Tables:
        from corpusdb.core.storage import load_tables

        return load_tables(path, schema)

    @classmethod
    def load_or_default(cls, path: Path, schema: DatabaseSchema | None = None) -> Tables:
        """Like ``load``, but a missing file yields an empty store."""
        from corpusdb.core.storage import load_tables_or_default

        return load_tables_or_default(path, schema)

    def store_multifile(self, database_root: Path, ext: str = "msgpack") -> None:
        """Save one file per relation and interning table under ``database_root``."""
        from corpusdb.core.storage import store_multifile

        store_multifile(self, database_root, ext)

    @classmethod
    def load_multifile(
        cls, database_root: Path, schema: DatabaseSchema | None = None, ext: str = "msgpack"
    ) -> Tables:
        from corpusdb.core.storage import load_multifile

        return load_multifile(database_root, schema, ext)

    @classmethod
    def load_multifile_or_default(
        cls, database_root: Path, schema: DatabaseSchema | None = None, ext: str = "msgpack"
    ) -> Tables:
        from corpusdb.core.storage import load_multifile_or_default

        return load_multifile_or_default(database_root, schema, ext)

    # Inspection

    def stats(self) -> dict[str, dict[str, int]]:
        """Fact, entry, and counter totals."""
        return {
            "relations": {name: len(r) for name, r in self.relations.items()},
            "interning_tables": {name: len(t) for name, t in self.interning_tables.items()},
            "counters": self.counters.as_dict(),
        }

    def is_empty(self) -> bool:
        return (
            all(len(r) == 0 for r in self.relations.values())
            and all(len(t) == 0 for t in self.interning_tables.values())
            and all(self.counters.generated(k.name) == 0 for k in self.schema.incremental_ids)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tables):
            return NotImplemented
        return (
            self.fingerprint == other.fingerprint
            and self.counters == other.counters
            and self.interning_tables == other.interning_tables
            and self.relations == other.relations
        )

    def __repr__(self) -> str:
        facts = sum(len(r) for r in self.relations.values())
        entries = sum(len(t) for t in self.interning_tables.values())
        return f"Tables(schema={self.schema.name!r}, facts={facts}, interned={entries})"
