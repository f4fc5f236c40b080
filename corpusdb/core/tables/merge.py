"""Merge engine: fold one store into another without collisions.

The destination is an internally consistent corpus; the source was built on
its own, with counters starting at each kind's reserved-constant floor and
its own interning keys. The steps below run in this order because each one
uses the remappings built before it:

1. Interning tables, dependencies first: every source value is re-interned
   into the destination, giving an ``old_key -> new_key`` map per table.
   Keys of other tables inside a value are translated with the maps built
   for those tables.
2. Relations: every source fact is translated column by column and
   appended. Incremental IDs are shifted past the destination's highest
   issued ID, except reserved constants which keep their value.
3. Counters: each destination counter moves forward by the number of fresh
   IDs the source issued.

Merging the same source twice duplicates its facts. Callers track which
sources were merged. A failure leaves the destination half-merged; it has to
be discarded and re-loaded.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from corpusdb.core.exceptions import InvariantError, MergeOrderError, SchemaMismatchError
from corpusdb.core.models import MergeStats
from corpusdb.core.schema import (
    CustomIdKind,
    EnumKind,
    IncrementalIdKind,
    InternedIdKind,
    InterningTableDecl,
    PrimitiveKind,
)

if TYPE_CHECKING:
    from corpusdb.core.tables.tables import Tables

Remap = Callable[[Any], Any]
KeyMaps = dict[str, list[int]]


def merge_tables(dest: Tables, src: Tables) -> MergeStats:
    """Absorb ``src`` into ``dest``. ``src`` is left untouched."""
    if src is dest:
        raise ValueError("Cannot merge a store into itself")
    if dest.fingerprint != src.fingerprint:
        raise SchemaMismatchError(
            f"Cannot merge stores of schema {src.schema.name!r} ({src.fingerprint[:12]}) "
            f"into schema {dest.schema.name!r} ({dest.fingerprint[:12]})"
        )

    stats = MergeStats()

    key_maps: KeyMaps = {}
    for decl in dest.schema.interning_order():
        key_maps[decl.name] = _merge_interning_table(dest, src, decl, key_maps, stats)

    # Offsets are fixed before any counter moves.
    offsets = {
        inc_id.name: dest.counters.generated(inc_id.name) for inc_id in dest.schema.incremental_ids
    }

    for decl in dest.schema.relations:
        remaps = [_column_remap(dest, c.type, key_maps, offsets, stats) for c in decl.columns]
        target = dest.relations[decl.name]
        count = 0
        for fact in src.relations[decl.name].iter():
            target.insert(tuple(remap(value) for remap, value in zip(remaps, fact)))
            count += 1
        stats.relations[decl.name] = count
        stats.facts += count

    for inc_id in dest.schema.incremental_ids:
        dest.counters.advance(inc_id.name, src.counters.generated(inc_id.name))

    return stats


def _merge_interning_table(
    dest: Tables,
    src: Tables,
    decl: InterningTableDecl,
    key_maps: KeyMaps,
    stats: MergeStats,
) -> list[int]:
    """Re-intern every value of ``src``'s table into ``dest``; return the key map."""
    target = dest.interning_tables[decl.name]
    before = len(target)
    remaps = [_value_remap(dest, t, key_maps) for t in decl.value_types]

    key_map: list[int] = []
    for value in src.interning_tables[decl.name]:
        if decl.is_tuple:
            new_value = tuple(remap(v) for remap, v in zip(remaps, value))
        else:
            new_value = remaps[0](value)
        key_map.append(target.intern(new_value))

    stats.interned += len(target) - before
    return key_map


def _translate(table: str, key_maps: KeyMaps) -> Remap:
    """Build a key translator for an interning table that must already be merged."""
    key_map = key_maps.get(table)
    if key_map is None:
        raise MergeOrderError(table, -1)

    def translate(key: int) -> int:
        if not 0 <= key < len(key_map):
            raise MergeOrderError(table, key)
        return key_map[key]

    return translate


def _identity(value: Any) -> Any:
    return value


def _value_remap(dest: Tables, type_name: str, key_maps: KeyMaps) -> Remap:
    """Translator for one element of an interned value."""
    kind = dest.column_kind(type_name)
    if isinstance(kind, InternedIdKind):
        return _translate(kind.table.name, key_maps)
    if isinstance(kind, (CustomIdKind, EnumKind, PrimitiveKind)):
        return _identity
    raise InvariantError(f"Interned values cannot contain {type_name}")


def _column_remap(
    dest: Tables,
    type_name: str,
    key_maps: KeyMaps,
    offsets: dict[str, int],
    stats: MergeStats,
) -> Remap:
    """Translator for one relation column, chosen by the column's kind."""
    kind = dest.column_kind(type_name)
    if isinstance(kind, (CustomIdKind, EnumKind, PrimitiveKind)):
        return _identity
    if isinstance(kind, InternedIdKind):
        return _translate(kind.table.name, key_maps)
    if isinstance(kind, IncrementalIdKind):
        name = kind.id.name
        offset = offsets[name]
        reserved = kind.id.num_constants
        counters = dest.counters

        def shift(value: int) -> int:
            if value < reserved:
                return value
            stats.shifted += 1
            return counters.shift(name, value, offset)

        return shift
    raise AssertionError(f"Unhandled column kind {kind!r}")
