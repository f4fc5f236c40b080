"""corpusdb custom exceptions."""

from __future__ import annotations

from pathlib import Path


class CorpusError(Exception):
    """Base exception for corpusdb errors."""


class SchemaError(CorpusError):
    """The schema declaration is invalid."""


class SchemaMismatchError(CorpusError):
    """Two stores (or a store and a schema) were built from different schemas."""


class UnknownNameError(CorpusError, KeyError):
    """A relation, interning table, ID kind, or constant is not declared."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class StoreError(CorpusError):
    """A persisted store could not be read or written.

    Store errors are recoverable at the granularity of one unit: the caller
    can log them and move on to the next store.
    """

    def __init__(self, path: Path, message: str, cause: BaseException | None = None) -> None:
        self.path = path
        self.cause = cause
        detail = f"{message} {path}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)


class StoreNotFoundError(StoreError):
    """A persisted file is missing."""


class CorruptStoreError(StoreError):
    """A persisted file exists but does not decode to the expected structure."""


class UnsupportedFormatError(StoreError):
    """The file extension does not select a known encoding."""


class StoreWriteError(StoreError):
    """A store could not be encoded for writing."""


class InvariantError(CorpusError):
    """An internal invariant was violated.

    These are never recovered from: continuing would certify a corrupted
    corpus as valid.
    """


class CounterOverflowError(InvariantError):
    """An ID counter or shifted ID left the range of its integer width."""

    def __init__(self, kind: str, value: int, limit: int) -> None:
        self.kind = kind
        self.value = value
        self.limit = limit
        super().__init__(f"Overflow of {kind}: {value} exceeds the maximum {limit}")


class MergeOrderError(InvariantError):
    """A value referenced an interned key that has no remapping yet."""

    def __init__(self, table: str, key: int) -> None:
        self.table = table
        self.key = key
        super().__init__(f"Key {key} of interning table '{table}' was not remapped before use")
