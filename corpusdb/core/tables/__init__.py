"""
In-memory fact store.

Components:
    - InterningTable: value -> dense key deduplication
    - Relation: append-only ordered fact table
    - Counters: per-kind ID generators with reserved constants
    - Tables: aggregate of all of the above, registration operations
    - merge_tables(): fold an independently built store into another
"""

from corpusdb.core.tables.counters import Counters
from corpusdb.core.tables.interning import InterningTable
from corpusdb.core.tables.merge import merge_tables
from corpusdb.core.tables.relation import Fact, Relation
from corpusdb.core.tables.tables import Tables

__all__ = [
    "Counters",
    "Fact",
    "InterningTable",
    "Relation",
    "Tables",
    "merge_tables",
]
