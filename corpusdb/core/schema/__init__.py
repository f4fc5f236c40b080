"""
Schema model: the declarative description of a store.

Declarations (models.py):
    - CustomId: globally unique IDs, never remapped
    - IncrementalId: per-unit counters with reserved constants
    - InterningTableDecl: value -> dense key tables (scalar or tuple values)
    - EnumDecl, RelationDecl, Column
    - Column kinds: CustomIdKind, IncrementalIdKind, InternedIdKind, EnumKind, PrimitiveKind

Ordering (graph.py):
    - InterningGraph: dependency graph of interning tables, topological order

Files (loader.py, default.py):
    - load_schema()/save_schema(): JSON schema documents
    - default_schema(): the built-in Rust corpus schema
"""

from corpusdb.core.schema.default import DEFAULT_SCHEMA, default_schema
from corpusdb.core.schema.graph import InterningGraph
from corpusdb.core.schema.loader import load_schema, save_schema, schema_from_dict, schema_to_dict
from corpusdb.core.schema.models import (
    Column,
    ColumnKind,
    Constant,
    CustomId,
    CustomIdKind,
    DatabaseSchema,
    EnumDecl,
    EnumKind,
    IncrementalId,
    IncrementalIdKind,
    InternedIdKind,
    InterningTableDecl,
    PrimitiveKind,
    RelationDecl,
)

__all__ = [
    # Declarations
    "DatabaseSchema",
    "CustomId",
    "Constant",
    "IncrementalId",
    "EnumDecl",
    "InterningTableDecl",
    "RelationDecl",
    "Column",
    # Column kinds
    "ColumnKind",
    "CustomIdKind",
    "IncrementalIdKind",
    "InternedIdKind",
    "EnumKind",
    "PrimitiveKind",
    # Ordering
    "InterningGraph",
    # Files
    "DEFAULT_SCHEMA",
    "default_schema",
    "load_schema",
    "save_schema",
    "schema_from_dict",
    "schema_to_dict",
]
