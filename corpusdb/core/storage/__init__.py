"""
Storage layer: persistence for Tables.

This module provides two layouts over two encodings:

Components:
    - codec: extension-selected encodings (.json text, .msgpack binary), atomic writes
    - files: single-file layout (save_tables, load_tables, load_tables_or_default)
    - multifile: one file per relation/interning table, staged publish, Loader

Multi-file layout:
    relations/<relation>.<ext>
    interning/<table>.<ext>
    counters.<ext>          (written last: the completion marker)
"""

from corpusdb.core.storage.codec import ENCODINGS, encoding_for, read_file, write_file
from corpusdb.core.storage.files import load_tables, load_tables_or_default, save_tables
from corpusdb.core.storage.multifile import (
    Loader,
    is_complete_multifile,
    load_multifile,
    load_multifile_or_default,
    recover_multifile,
    store_multifile,
)

__all__ = [
    "ENCODINGS",
    "Loader",
    "encoding_for",
    "is_complete_multifile",
    "load_multifile",
    "load_multifile_or_default",
    "load_tables",
    "load_tables_or_default",
    "read_file",
    "recover_multifile",
    "save_tables",
    "store_multifile",
    "write_file",
]
