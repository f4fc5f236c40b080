"""Built-in schema for a corpus of Rust crates.

The schema is plain data so that it can be dumped to JSON, edited, and
loaded back with ``corpusdb schema --json`` and ``CORPUSDB_SCHEMA_PATH``.
"""

from __future__ import annotations

import copy
from typing import Any

from corpusdb.core.schema.loader import schema_from_dict
from corpusdb.core.schema.models import DatabaseSchema

DEFAULT_SCHEMA: dict[str, Any] = {
    "name": "rust-corpus",
    "custom_ids": [
        {"name": "CrateHash", "type": "int"},
        {"name": "DefPathHash", "type": "str"},
    ],
    "incremental_ids": [
        {"name": "Build", "width": 32},
        {"name": "Module", "width": 32},
        {"name": "Function", "width": 32, "constants": [{"name": "UNKNOWN", "value": 0}]},
        {"name": "CallSite", "width": 64},
    ],
    "enums": [
        {
            "name": "Visibility",
            "variants": ["Public", "Crate", "Restricted", "Private", "Unknown"],
            "default": "Unknown",
        },
        {"name": "Unsafety", "variants": ["Unsafe", "Normal"], "default": "Normal"},
    ],
    "interning_tables": [
        {"name": "strings", "key": "InternedString", "value": "str"},
        {"name": "crate_names", "key": "CrateName", "value": "InternedString"},
        {"name": "relative_def_paths", "key": "RelativeDefId", "value": "InternedString"},
        {
            "name": "def_paths",
            "key": "DefPath",
            "value": ["CrateName", "CrateHash", "RelativeDefId", "DefPathHash"],
        },
    ],
    "relations": [
        {
            "name": "builds",
            "columns": [
                {"name": "build", "type": "Build", "auto": True},
                {"name": "crate_name", "type": "CrateName"},
                {"name": "crate_hash", "type": "CrateHash"},
                {"name": "edition", "type": "str"},
            ],
        },
        {
            "name": "root_modules",
            "columns": [
                {"name": "build", "type": "Build"},
                {"name": "root_module", "type": "Module", "auto": True},
            ],
        },
        {
            "name": "submodules",
            "columns": [
                {"name": "def_path", "type": "DefPath"},
                {"name": "parent", "type": "Module"},
                {"name": "child", "type": "Module", "auto": True},
                {"name": "name", "type": "InternedString"},
                {"name": "visibility", "type": "Visibility"},
            ],
        },
        {
            "name": "function_definitions",
            "columns": [
                {"name": "function", "type": "Function", "auto": True},
                {"name": "def_path", "type": "DefPath"},
                {"name": "module", "type": "Module"},
                {"name": "name", "type": "InternedString"},
                {"name": "visibility", "type": "Visibility"},
                {"name": "unsafety", "type": "Unsafety"},
            ],
        },
        {
            "name": "call_graph",
            "columns": [
                {"name": "call_site", "type": "CallSite", "auto": True},
                {"name": "caller", "type": "Function"},
                {"name": "callee", "type": "DefPath"},
            ],
        },
    ],
}


def default_schema() -> DatabaseSchema:
    """Return a new, validated copy of the built-in schema.

    Each call builds its own declarations, so a caller that edits the result
    does not change the schema of stores created elsewhere.
    """
    return schema_from_dict(copy.deepcopy(DEFAULT_SCHEMA))
