"""Shared fixtures: a small schema that exercises every column kind."""

import copy
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from corpusdb.core.schema import DatabaseSchema, schema_from_dict
from corpusdb.core.tables import Tables

SMALL_SCHEMA: dict[str, Any] = {
    "name": "small",
    "custom_ids": [{"name": "Hash", "type": "int"}],
    "incremental_ids": [
        {"name": "Function", "width": 32, "constants": [{"name": "UNKNOWN", "value": 0}]},
        {"name": "Tiny", "width": 8},
    ],
    "enums": [{"name": "Color", "variants": ["Red", "Green"], "default": "Red"}],
    "interning_tables": [
        {"name": "strings", "key": "Str", "value": "str"},
        {"name": "names", "key": "Name", "value": "Str"},
        {"name": "paths", "key": "Path", "value": ["Name", "Hash"]},
    ],
    "relations": [
        {"name": "words", "columns": [{"name": "word", "type": "Str"}]},
        {
            "name": "functions",
            "columns": [
                {"name": "function", "type": "Function", "auto": True},
                {"name": "path", "type": "Path"},
                {"name": "color", "type": "Color"},
            ],
        },
        {
            "name": "calls",
            "columns": [
                {"name": "caller", "type": "Function"},
                {"name": "callee", "type": "Function"},
            ],
        },
        {"name": "tiny", "columns": [{"name": "id", "type": "Tiny", "auto": True}]},
    ],
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def schema_data() -> dict[str, Any]:
    """A fresh copy of the small schema document."""
    return copy.deepcopy(SMALL_SCHEMA)


@pytest.fixture
def schema() -> DatabaseSchema:
    return schema_from_dict(SMALL_SCHEMA)


@pytest.fixture
def measures_schema(schema_data: dict[str, Any]) -> DatabaseSchema:
    """The small schema plus a relation of primitive columns."""
    schema_data["relations"].append(
        {
            "name": "measures",
            "columns": [
                {"name": "value", "type": "float"},
                {"name": "count", "type": "int"},
                {"name": "flag", "type": "bool"},
            ],
        }
    )
    return schema_from_dict(schema_data)


@pytest.fixture
def tables(schema: DatabaseSchema) -> Tables:
    """An empty store of the small schema."""
    return Tables(schema)


def build_unit(schema: DatabaseSchema, paths: list[tuple[str, int]]) -> Tables:
    """A unit with one function per path, each calling the previous one."""
    unit = Tables(schema)
    previous = unit.constant("Function", "UNKNOWN")
    for name, hash_ in paths:
        (function,) = unit.register("functions", path=(name, hash_), color="Green")
        unit.register("calls", caller=function, callee=previous)
        unit.register("words", word=name)
        previous = function
    return unit


@pytest.fixture
def make_unit(schema: DatabaseSchema) -> Callable[[list[tuple[str, int]]], Tables]:
    """Build independent units of the small schema."""
    return lambda paths: build_unit(schema, paths)


@pytest.fixture
def populated(schema: DatabaseSchema) -> Tables:
    """A store with facts in every relation."""
    unit = build_unit(schema, [("main", 1), ("helper", 2)])
    unit.register("tiny")
    return unit
