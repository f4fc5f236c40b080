"""Single-file layout: a whole store in one file."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from corpusdb.core.exceptions import CorruptStoreError, SchemaMismatchError
from corpusdb.core.schema import (
    DatabaseSchema,
    IncrementalIdKind,
    InternedIdKind,
    InterningTableDecl,
    RelationDecl,
    default_schema,
)
from corpusdb.core.storage.codec import TablesRecord, read_file, write_file
from corpusdb.core.tables import Counters, InterningTable, Relation, Tables
from corpusdb.core.tables.tables import check_scalar
from corpusdb.core.tables.relation import Fact

logger = logging.getLogger(__name__)


def save_tables(tables: Tables, path: Path) -> None:
    """Save ``tables`` to ``path``; ``.json`` or ``.msgpack`` selects the encoding."""
    record = TablesRecord(
        schema=tables.fingerprint,
        schema_name=tables.schema.name,
        counters=tables.counters.as_dict(),
        interning_tables={name: t.as_list() for name, t in tables.interning_tables.items()},
        relations={name: r.as_list() for name, r in tables.relations.items()},
    )
    write_file(path, record)


def load_tables(path: Path, schema: DatabaseSchema | None = None) -> Tables:
    """Load a single-file store saved with ``save_tables``."""
    schema = schema if schema is not None else default_schema()
    record = read_file(path, TablesRecord)
    tables = Tables(schema)
    check_fingerprint(schema, tables.fingerprint, record.schema, path)
    if set(record.interning_tables) != set(tables.interning_tables):
        raise CorruptStoreError(path, "Interning tables do not match the schema in")
    if set(record.relations) != set(tables.relations):
        raise CorruptStoreError(path, "Relations do not match the schema in")

    tables.counters = restore_counters(schema, record.counters, path)
    for decl in schema.interning_tables:
        tables.interning_tables[decl.name] = restore_interning_table(
            decl, record.interning_tables[decl.name], path
        )
    for relation in schema.relations:
        tables.relations[relation.name] = restore_relation(
            relation, record.relations[relation.name], path
        )
    check_references(tables, path)
    return tables


def load_tables_or_default(path: Path, schema: DatabaseSchema | None = None) -> Tables:
    """Load ``path``, or return an empty store if nothing was saved there yet."""
    if not path.exists():
        logger.debug("No store at %s, starting empty", path)
        return Tables(schema)
    return load_tables(path, schema)


def check_fingerprint(schema: DatabaseSchema, expected: str, found: str, path: Path) -> None:
    if found != expected:
        raise SchemaMismatchError(
            f"{path} was written with schema {found[:12]}, "
            f"expected {schema.name!r} ({expected[:12]})"
        )


def restore_counters(schema: DatabaseSchema, values: dict[str, int], path: Path) -> Counters:
    try:
        return Counters.from_values(schema, values)
    except ValueError as e:
        raise CorruptStoreError(path, "Invalid counters in", e) from e


def restore_interning_table(
    decl: InterningTableDecl, values: Iterable[Any], path: Path
) -> InterningTable:
    """Rebuild a table; tuple values come back from the encoders as lists."""
    if decl.is_tuple:
        arity = len(decl.value_types)
        converted: list[Any] = []
        for value in values:
            if not isinstance(value, (list, tuple)) or len(value) != arity:
                raise CorruptStoreError(
                    path, f"Value {value!r} of '{decl.name}' is not a {arity}-tuple in"
                )
            converted.append(tuple(value))
        values = converted
    try:
        return InterningTable.from_values(values, decl.name, decl.key_width)
    except (ValueError, TypeError) as e:
        raise CorruptStoreError(path, f"Invalid interning table '{decl.name}' in", e) from e


def restore_relation(decl: RelationDecl, facts: Iterable[Fact], path: Path) -> Relation:
    relation = Relation(decl.name, decl.arity)
    try:
        relation.extend(tuple(fact) for fact in facts)
    except ValueError as e:
        raise CorruptStoreError(path, f"Invalid relation '{decl.name}' in", e) from e
    return relation


def check_references(tables: Tables, path: Path) -> None:
    """Every stored value must match its declared type.

    Interned keys and incremental IDs must also exist in ``tables``. Catching
    bad values here turns a damaged file into a load error for that file
    instead of an invariant violation, or a corrupted corpus, after a merge.
    """
    for decl in tables.schema.interning_tables:
        for key, value in tables.interning_tables[decl.name].items():
            elements = value if decl.is_tuple else (value,)
            for type_name, element in zip(decl.value_types, elements):
                _check_value(tables, type_name, element, path, f"{decl.name}[{key}]")

    for relation in tables.schema.relations:
        for i, fact in enumerate(tables.relations[relation.name].iter()):
            for column, value in zip(relation.columns, fact):
                _check_value(tables, column.type, value, path, f"{relation.name}[{i}]")


def _check_value(tables: Tables, type_name: str, value: Any, path: Path, where: str) -> None:
    kind = tables.column_kind(type_name)
    if isinstance(kind, InternedIdKind):
        limit = len(tables.interning_tables[kind.table.name])
    elif isinstance(kind, IncrementalIdKind):
        limit = tables.counters.value(kind.id.name)
    else:
        try:
            check_scalar(kind, value, where)
        except (TypeError, ValueError) as e:
            raise CorruptStoreError(path, "Invalid value in", e) from e
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < limit:
        raise CorruptStoreError(path, f"{where} refers to unknown {type_name} {value!r} in")
