"""Schema declarations: ID kinds, enums, interning tables, and relations."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Union

import msgspec

from corpusdb.core.exceptions import SchemaError, UnknownNameError

PRIMITIVE_TYPES: dict[str, tuple[type, ...]] = {
    "str": (str,),
    "int": (int,),
    "bool": (bool,),
    "float": (float, int),
}

CUSTOM_ID_TYPES = ("int", "str")

ID_WIDTHS = (8, 16, 32, 64)


@dataclass(frozen=True)
class CustomId:
    """An ID that is already globally unique (e.g. a content hash)."""

    name: str
    type: str = "int"


@dataclass(frozen=True)
class Constant:
    """A reserved value of an incremental ID."""

    name: str
    value: int


@dataclass(frozen=True)
class IncrementalId:
    """An ID generated by a per-unit counter.

    Reserved constants occupy ``[0, len(constants))`` and mean the same thing
    in every unit.
    """

    name: str
    width: int = 32
    constants: list[Constant] = field(default_factory=list)

    @property
    def num_constants(self) -> int:
        return len(self.constants)

    @property
    def max_value(self) -> int:
        return (1 << self.width) - 1

    def get_constant(self, name: str) -> Constant:
        for constant in self.constants:
            if constant.name == name:
                return constant
        raise UnknownNameError(f"{self.name} has no constant '{name}'")


@dataclass(frozen=True)
class EnumDecl:
    """An enumeration whose values are stored by variant name."""

    name: str
    variants: list[str]
    default: str


@dataclass(frozen=True)
class InterningTableDecl:
    """An interning table mapping ``value`` to a dense ``key``.

    ``value`` is a single type name for a scalar table, or a list of type
    names for a tuple table.
    """

    name: str
    key: str
    value: Union[str, list[str]]
    key_width: int = 32

    @property
    def is_tuple(self) -> bool:
        return isinstance(self.value, list)

    @property
    def value_types(self) -> list[str]:
        """Type names referenced by the value, in order."""
        if isinstance(self.value, list):
            return list(self.value)
        return [self.value]


@dataclass(frozen=True)
class Column:
    """A relation column. ``auto`` columns are filled from the counters."""

    name: str
    type: str
    auto: bool = False


@dataclass(frozen=True)
class RelationDecl:
    """A relation: an ordered list of typed columns."""

    name: str
    columns: list[Column]

    @property
    def arity(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


# Column kinds: the closed set of ways a value is treated during registration
# and merge.


@dataclass(frozen=True)
class CustomIdKind:
    id: CustomId


@dataclass(frozen=True)
class IncrementalIdKind:
    id: IncrementalId


@dataclass(frozen=True)
class InternedIdKind:
    table: InterningTableDecl


@dataclass(frozen=True)
class EnumKind:
    enum: EnumDecl


@dataclass(frozen=True)
class PrimitiveKind:
    name: str


ColumnKind = Union[CustomIdKind, IncrementalIdKind, InternedIdKind, EnumKind, PrimitiveKind]


@dataclass
class DatabaseSchema:
    """Configuration of all tables of a store."""

    name: str = "corpus"
    custom_ids: list[CustomId] = field(default_factory=list)
    incremental_ids: list[IncrementalId] = field(default_factory=list)
    enums: list[EnumDecl] = field(default_factory=list)
    interning_tables: list[InterningTableDecl] = field(default_factory=list)
    relations: list[RelationDecl] = field(default_factory=list)

    def column_kind(self, type_name: str) -> ColumnKind:
        """Resolve a type name to its column kind."""
        for custom_id in self.custom_ids:
            if custom_id.name == type_name:
                return CustomIdKind(custom_id)
        for inc_id in self.incremental_ids:
            if inc_id.name == type_name:
                return IncrementalIdKind(inc_id)
        for table in self.interning_tables:
            if table.key == type_name:
                return InternedIdKind(table)
        for enum in self.enums:
            if enum.name == type_name:
                return EnumKind(enum)
        if type_name in PRIMITIVE_TYPES:
            return PrimitiveKind(type_name)
        raise SchemaError(f"Unknown type '{type_name}'")

    def get_relation(self, name: str) -> RelationDecl:
        for relation in self.relations:
            if relation.name == name:
                return relation
        raise UnknownNameError(f"Unknown relation '{name}'")

    def get_interning_table(self, name: str) -> InterningTableDecl:
        for table in self.interning_tables:
            if table.name == name:
                return table
        raise UnknownNameError(f"Unknown interning table '{name}'")

    def get_incremental_id(self, name: str) -> IncrementalId:
        for inc_id in self.incremental_ids:
            if inc_id.name == name:
                return inc_id
        raise UnknownNameError(f"Unknown incremental ID '{name}'")

    def interning_order(self) -> list[InterningTableDecl]:
        """Interning tables ordered so that every table follows its dependencies."""
        from corpusdb.core.schema.graph import InterningGraph

        return InterningGraph.from_schema(self).topological_order()

    def validate(self) -> DatabaseSchema:
        """Check the schema for consistency. Returns ``self`` for chaining."""
        seen: set[str] = set()
        declared = (
            [c.name for c in self.custom_ids]
            + [i.name for i in self.incremental_ids]
            + [e.name for e in self.enums]
            + [t.key for t in self.interning_tables]
        )
        for name in declared:
            if name in seen or name in PRIMITIVE_TYPES:
                raise SchemaError(f"Type '{name}' is declared more than once")
            seen.add(name)

        for custom_id in self.custom_ids:
            if custom_id.type not in CUSTOM_ID_TYPES:
                raise SchemaError(
                    f"Custom ID '{custom_id.name}' must be one of {CUSTOM_ID_TYPES}, "
                    f"not '{custom_id.type}'"
                )

        for inc_id in self.incremental_ids:
            _validate_width(inc_id.name, inc_id.width)
            values = sorted(c.value for c in inc_id.constants)
            if values != list(range(len(inc_id.constants))):
                raise SchemaError(
                    f"Constants of '{inc_id.name}' must cover 0..{len(inc_id.constants) - 1} "
                    f"exactly once, got {values}"
                )
            if len({c.name for c in inc_id.constants}) != len(inc_id.constants):
                raise SchemaError(f"Duplicate constant names in '{inc_id.name}'")

        for enum in self.enums:
            if not enum.variants:
                raise SchemaError(f"Enum '{enum.name}' has no variants")
            if enum.default not in enum.variants:
                raise SchemaError(f"Default '{enum.default}' is not a variant of '{enum.name}'")

        _check_unique("interning table", [t.name for t in self.interning_tables])
        for table in self.interning_tables:
            _validate_width(table.key, table.key_width)
            if table.is_tuple and not table.value_types:
                raise SchemaError(f"Interning table '{table.name}' has an empty tuple value")
            for type_name in table.value_types:
                if isinstance(self.column_kind(type_name), IncrementalIdKind):
                    raise SchemaError(
                        f"Interning table '{table.name}' cannot intern incremental ID "
                        f"'{type_name}'"
                    )

        _check_unique("relation", [r.name for r in self.relations])
        for relation in self.relations:
            _check_unique(f"column of '{relation.name}'", relation.column_names)
            if not relation.columns:
                raise SchemaError(f"Relation '{relation.name}' has no columns")
            for column in relation.columns:
                kind = self.column_kind(column.type)
                if column.auto and not isinstance(kind, IncrementalIdKind):
                    raise SchemaError(
                        f"Column '{relation.name}.{column.name}' is marked auto, "
                        "but only incremental IDs can be generated"
                    )

        # Raises SchemaError on cycles.
        self.interning_order()
        return self

    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON encoding of the schema."""
        payload = msgspec.json.encode(self, order="sorted")
        return hashlib.sha256(payload).hexdigest()


def _validate_width(name: str, width: int) -> None:
    if width not in ID_WIDTHS:
        raise SchemaError(f"'{name}' has width {width}, expected one of {ID_WIDTHS}")


def _check_unique(what: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise SchemaError(f"Duplicate {what} '{name}'")
        seen.add(name)
