"""Read and write schemas as plain JSON documents."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import msgspec

from corpusdb.core.exceptions import SchemaError
from corpusdb.core.schema.models import DatabaseSchema


def schema_from_dict(data: dict[str, Any]) -> DatabaseSchema:
    """Build and validate a schema from builtin Python data."""
    try:
        schema = msgspec.convert(data, type=DatabaseSchema)
    except msgspec.ValidationError as e:
        raise SchemaError(f"Invalid schema document: {e}") from e
    return schema.validate()


def schema_to_dict(schema: DatabaseSchema) -> dict[str, Any]:
    return msgspec.to_builtins(schema)


def load_schema(path: Path) -> DatabaseSchema:
    """Load a schema from a JSON file."""
    try:
        data = msgspec.json.decode(path.read_bytes())
    except OSError as e:
        raise SchemaError(f"Cannot read schema {path}: {e}") from e
    except msgspec.DecodeError as e:
        raise SchemaError(f"Schema {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SchemaError(f"Schema {path} must be a JSON object")
    return schema_from_dict(data)


def save_schema(schema: DatabaseSchema, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(msgspec.json.format(msgspec.json.encode(schema), indent=2))
