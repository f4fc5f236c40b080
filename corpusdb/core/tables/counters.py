"""Per-kind ID generators with reserved constants."""

from __future__ import annotations

from collections.abc import Mapping

from corpusdb.core.exceptions import CounterOverflowError, UnknownNameError
from corpusdb.core.schema import DatabaseSchema, IncrementalId


class Counters:
    """One monotonically increasing counter per incremental ID kind.

    Every counter starts at the number of reserved constants of its kind, so
    the first fresh ID follows the reserved range.
    """

    __slots__ = ("_ids", "_values")

    def __init__(self, schema: DatabaseSchema) -> None:
        self._ids: dict[str, IncrementalId] = {i.name: i for i in schema.incremental_ids}
        self._values: dict[str, int] = {i.name: i.num_constants for i in schema.incremental_ids}

    @classmethod
    def from_values(cls, schema: DatabaseSchema, values: Mapping[str, int]) -> Counters:
        """Restore persisted counter values. Kinds must match the schema exactly."""
        counters = cls(schema)
        if set(values) != set(counters._values):
            raise ValueError(
                f"Counter kinds {sorted(values)} do not match schema kinds "
                f"{sorted(counters._values)}"
            )
        for kind, value in values.items():
            inc_id = counters._ids[kind]
            if not inc_id.num_constants <= value <= inc_id.max_value:
                raise ValueError(f"Counter {kind}={value} is outside its valid range")
            counters._values[kind] = value
        return counters

    def _get_id(self, kind: str) -> IncrementalId:
        try:
            return self._ids[kind]
        except KeyError:
            raise UnknownNameError(f"Unknown incremental ID '{kind}'") from None

    def fresh(self, kind: str) -> int:
        """Return the current counter value and increment it."""
        inc_id = self._get_id(kind)
        value = self._values[kind]
        if value + 1 > inc_id.max_value:
            raise CounterOverflowError(kind, value + 1, inc_id.max_value)
        self._values[kind] = value + 1
        return value

    def constant(self, kind: str, name: str) -> int:
        """Reserved value of the named constant. Does not touch the counter."""
        return self._get_id(kind).get_constant(name).value

    def num_constants(self, kind: str) -> int:
        return self._get_id(kind).num_constants

    def value(self, kind: str) -> int:
        """Next value ``fresh`` would return."""
        self._get_id(kind)
        return self._values[kind]

    def generated(self, kind: str) -> int:
        """How many non-reserved IDs of ``kind`` have been issued."""
        return self.value(kind) - self.num_constants(kind)

    def is_reserved(self, kind: str, value: int) -> bool:
        return value < self.num_constants(kind)

    def shift(self, kind: str, value: int, offset: int) -> int:
        """Renumber ``value`` by ``offset``; reserved constants are kept."""
        inc_id = self._get_id(kind)
        if value < inc_id.num_constants:
            return value
        shifted = value + offset
        if shifted > inc_id.max_value:
            raise CounterOverflowError(kind, shifted, inc_id.max_value)
        return shifted

    def advance(self, kind: str, amount: int) -> None:
        """Move the counter forward by ``amount`` freshly issued IDs."""
        inc_id = self._get_id(kind)
        new_value = self._values[kind] + amount
        if new_value > inc_id.max_value:
            raise CounterOverflowError(kind, new_value, inc_id.max_value)
        self._values[kind] = new_value

    def as_dict(self) -> dict[str, int]:
        return dict(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Counters):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v}" for k, v in self._values.items())
        return f"Counters({values})"
