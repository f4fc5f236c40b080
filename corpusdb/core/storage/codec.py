"""File encodings selected by extension, and the persisted record types.

``.json`` is the textual encoding and ``.msgpack`` the compact binary one.
Both decode into the same typed records, so either round-trips losslessly.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar

import msgspec

from corpusdb.core.exceptions import (
    CorruptStoreError,
    StoreNotFoundError,
    StoreWriteError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENCODINGS = {".json": "json", ".msgpack": "msgpack"}


class StoreRecord(msgspec.Struct, frozen=True, kw_only=True, forbid_unknown_fields=True):
    """Base for persisted records. ``schema`` is the schema fingerprint."""

    schema: str


class CountersRecord(StoreRecord, frozen=True, kw_only=True):
    counters: dict[str, int]


class RelationRecord(StoreRecord, frozen=True, kw_only=True):
    relation: str
    facts: list[tuple[Any, ...]]


class InterningRecord(StoreRecord, frozen=True, kw_only=True):
    table: str
    values: list[Any]


class TablesRecord(StoreRecord, frozen=True, kw_only=True):
    schema_name: str
    counters: dict[str, int]
    interning_tables: dict[str, list[Any]]
    relations: dict[str, list[tuple[Any, ...]]]


def encoding_for(path: Path) -> str:
    """Name of the encoding selected by ``path``'s extension."""
    try:
        return ENCODINGS[path.suffix]
    except KeyError:
        raise UnsupportedFormatError(
            path, f"Unknown extension '{path.suffix}' (expected one of {sorted(ENCODINGS)}):"
        ) from None


def encode(obj: Any, path: Path) -> bytes:
    encoding = encoding_for(path)
    try:
        if encoding == "json":
            return msgspec.json.format(msgspec.json.encode(obj), indent=2)
        return msgspec.msgpack.encode(obj)
    except (msgspec.EncodeError, OverflowError, TypeError) as e:
        raise StoreWriteError(path, f"Cannot encode {encoding} for", e) from e


def decode(data: bytes, path: Path, type: type[T]) -> T:
    try:
        if encoding_for(path) == "json":
            return msgspec.json.decode(data, type=type)
        return msgspec.msgpack.decode(data, type=type)
    except msgspec.DecodeError as e:
        raise CorruptStoreError(path, f"Invalid {encoding_for(path)}", e) from e


def write_file(path: Path, obj: Any) -> None:
    """Write ``obj`` to ``path`` atomically: readers see the old or the new file."""
    data = encode(obj, path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug("Wrote %s (%d bytes)", path, len(data))


def read_file(path: Path, type: type[T]) -> T:
    """Read and decode ``path``; errors carry the path and the cause."""
    encoding_for(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise StoreNotFoundError(path, "Missing file", e) from e
    except OSError as e:
        raise CorruptStoreError(path, "Failed to open file", e) from e
    return decode(data, path, type)
