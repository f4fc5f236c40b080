"""Interning table: deduplicating value -> dense key store."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator

from corpusdb.core.exceptions import CounterOverflowError


class InterningTable:
    """One-to-one, insertion-ordered mapping from dense keys to values.

    ``intern(v1) == intern(v2)`` iff ``v1 == v2``. Keys start at 0 and are
    assigned in first-seen order. There is no removal.
    """

    __slots__ = ("name", "key_width", "_values", "_index")

    def __init__(self, name: str = "", key_width: int = 32) -> None:
        self.name = name
        self.key_width = key_width
        self._values: list[Hashable] = []
        self._index: dict[Hashable, int] = {}

    @classmethod
    def from_values(
        cls, values: Iterable[Hashable], name: str = "", key_width: int = 32
    ) -> InterningTable:
        """Rebuild a table from its values in key order."""
        table = cls(name, key_width)
        for value in values:
            expected = len(table)
            if table.intern(value) != expected:
                raise ValueError(f"Duplicate value {value!r} in interning table '{name}'")
        return table

    @property
    def max_key(self) -> int:
        return (1 << self.key_width) - 1

    def intern(self, value: Hashable) -> int:
        """Return the key of ``value``, assigning the next key if it is new."""
        key = self._index.get(value)
        if key is not None:
            return key
        key = len(self._values)
        if key > self.max_key:
            raise CounterOverflowError(f"{self.name} key", key, self.max_key)
        self._values.append(value)
        self._index[value] = key
        return key

    def find(self, value: Hashable) -> int | None:
        """Key of an already interned value, or None."""
        return self._index.get(value)

    def lookup(self, key: int) -> Hashable:
        """Value stored under ``key``."""
        if not 0 <= key < len(self._values):
            raise KeyError(f"Key {key} is not in interning table '{self.name}'")
        return self._values[key]

    def items(self) -> Iterator[tuple[int, Hashable]]:
        return enumerate(self._values)

    def as_list(self) -> list[Hashable]:
        return list(self._values)

    def __contains__(self, value: object) -> bool:
        return value in self._index

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InterningTable):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"InterningTable(name={self.name!r}, entries={len(self)})"
