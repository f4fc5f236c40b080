"""
Core module: schema, fact tables, merge, and persistence.

Schema (schema/):
    - DatabaseSchema: declared ID kinds, enums, interning tables, relations
    - default_schema(): the built-in Rust corpus schema

Tables (tables/):
    - Tables: the fact store of one unit or of the whole corpus
    - merge_tables(): fold one store into another without ID collisions

Exceptions (exceptions.py):
    - CorpusError: Base exception for all corpusdb errors
    - StoreError: a persisted store could not be read (recoverable per unit)
    - InvariantError: an internal invariant was violated (never recovered)

Storage (storage/):
    - save_tables/load_tables: single-file layout
    - store_multifile/load_multifile/Loader: one file per relation

Manager (manager.py):
    - StoreManager: merge new per-unit stores into the corpus
"""

from corpusdb.core.exceptions import (
    CorpusError,
    CorruptStoreError,
    CounterOverflowError,
    InvariantError,
    MergeOrderError,
    SchemaError,
    SchemaMismatchError,
    StoreError,
    StoreNotFoundError,
    StoreWriteError,
    UnknownNameError,
    UnsupportedFormatError,
)
from corpusdb.core.models import MergeStats, UnitRecord, UpdateReport
from corpusdb.core.schema import DatabaseSchema, default_schema, load_schema
from corpusdb.core.tables import Tables, merge_tables
from corpusdb.core.storage import (
    Loader,
    load_multifile,
    load_multifile_or_default,
    load_tables,
    load_tables_or_default,
    save_tables,
    store_multifile,
)
from corpusdb.core.manager import StoreManager

__all__ = [
    # Models
    "MergeStats",
    "UnitRecord",
    "UpdateReport",
    # Exceptions
    "CorpusError",
    "SchemaError",
    "SchemaMismatchError",
    "UnknownNameError",
    "StoreError",
    "StoreNotFoundError",
    "CorruptStoreError",
    "UnsupportedFormatError",
    "StoreWriteError",
    "InvariantError",
    "CounterOverflowError",
    "MergeOrderError",
    # Schema and tables
    "DatabaseSchema",
    "default_schema",
    "load_schema",
    "Tables",
    "merge_tables",
    # Storage
    "Loader",
    "save_tables",
    "load_tables",
    "load_tables_or_default",
    "store_multifile",
    "load_multifile",
    "load_multifile_or_default",
    # Manager
    "StoreManager",
]
