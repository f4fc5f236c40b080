"""Relation: append-only ordered fact table."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

Fact = tuple[Any, ...]


class Relation:
    """Ordered sequence of fixed-arity fact tuples.

    Facts are never deduplicated; uniqueness is carried by the IDs inside them.
    """

    __slots__ = ("name", "arity", "_facts")

    def __init__(self, name: str = "", arity: int = 0) -> None:
        self.name = name
        self.arity = arity
        self._facts: list[Fact] = []

    def insert(self, fact: Fact) -> None:
        """Append a fact."""
        if len(fact) != self.arity:
            raise ValueError(
                f"Relation '{self.name}' expects {self.arity} columns, got {len(fact)}"
            )
        self._facts.append(tuple(fact))

    def extend(self, facts: Iterable[Fact]) -> None:
        for fact in facts:
            self.insert(fact)

    def iter(self) -> Iterator[Fact]:
        """Facts in insertion order. Each call starts over."""
        return iter(self._facts)

    def as_list(self) -> list[Fact]:
        return list(self._facts)

    def __iter__(self) -> Iterator[Fact]:
        return self.iter()

    def __len__(self) -> int:
        return len(self._facts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Relation):
            return NotImplemented
        return self.arity == other.arity and self._facts == other._facts

    def __repr__(self) -> str:
        return f"Relation(name={self.name!r}, facts={len(self)})"
