"""Unit tests for merging independently built stores."""

import pytest

from corpusdb.core.exceptions import (
    CounterOverflowError,
    MergeOrderError,
    SchemaMismatchError,
)
from corpusdb.core.schema import DatabaseSchema, schema_from_dict
from corpusdb.core.tables import Tables
from corpusdb.core.tables.merge import _translate


def resolved_functions(tables: Tables) -> list[tuple[int, tuple[str, int]]]:
    return [(f, tables.resolve("paths", p)) for f, p, _ in tables.relation("functions")]


class TestInterningRemap:
    """Tests for re-interning source values into the destination."""

    def test_shared_and_new_strings(self, schema: DatabaseSchema) -> None:
        a = Tables(schema)
        for word in ["foo", "bar", "foo"]:
            a.register("words", word=word)
        b = Tables(schema)
        for word in ["bar", "baz"]:
            b.register("words", word=word)

        assert a.relation("words").as_list() == [(0,), (1,), (0,)]
        assert b.relation("words").as_list() == [(0,), (1,)]

        a.merge(b)

        assert list(a.interning_table("strings").items()) == [(0, "foo"), (1, "bar"), (2, "baz")]
        assert a.relation("words").as_list() == [(0,), (1,), (0,), (1,), (2,)]

    def test_tuple_values_follow_their_dependencies(self, make_unit) -> None:
        a = make_unit([("main", 1), ("helper", 2)])
        b = make_unit([("helper", 2), ("other", 3)])

        stats = a.merge(b)

        assert a.interning_table("paths").as_list() == [(0, 1), (1, 2), (2, 3)]
        assert [p for _, p in resolved_functions(a)] == [
            ("main", 1),
            ("helper", 2),
            ("helper", 2),
            ("other", 3),
        ]
        # "other" string, name, and path
        assert stats.interned == 3


class TestIncrementalShift:
    """Tests for collision-free renumbering of incremental IDs."""

    def test_function_ids(self, make_unit) -> None:
        a = make_unit([("a1", 1), ("a2", 2)])
        b = make_unit([("b1", 3), ("b2", 4)])
        assert a.counters.value("Function") == 3
        assert b.counters.value("Function") == 3

        stats = a.merge(b)

        assert [f for f, _ in resolved_functions(a)] == [1, 2, 3, 4]
        assert a.counters.value("Function") == 5
        assert a.constant("Function", "UNKNOWN") == 0
        assert b.constant("Function", "UNKNOWN") == 0
        # b's first function called UNKNOWN, which keeps its value.
        assert a.relation("calls").as_list() == [(1, 0), (2, 1), (3, 0), (4, 3)]
        assert stats.shifted == 2 + 3

    def test_fresh_after_merge(self, make_unit) -> None:
        a = make_unit([("a1", 1)])
        a.merge(make_unit([("b1", 2)]))

        (function,) = a.register("functions", path=("c1", 3), color="Red")
        assert function == 3

    def test_collision_free(self, make_unit, schema: DatabaseSchema) -> None:
        corpus = Tables(schema)
        for i in range(4):
            corpus.merge(make_unit([(f"u{i}f{j}", i * 10 + j) for j in range(3)]))

        ids = [f for f, _, _ in corpus.relation("functions")]
        assert len(ids) == 12
        assert len(set(ids)) == 12
        assert min(ids) == 1
        assert corpus.counters.value("Function") == 13

    def test_shift_overflow(self, schema: DatabaseSchema) -> None:
        a = Tables(schema)
        for _ in range(200):
            a.register("tiny")
        b = Tables(schema)
        for _ in range(100):
            b.register("tiny")

        with pytest.raises(CounterOverflowError) as exc_info:
            a.merge(b)

        assert exc_info.value.kind == "Tiny"
        assert exc_info.value.value == 256


class TestMergeProperties:
    """Tests for whole-store merge guarantees."""

    def test_merge_into_empty_equals_source(
        self, populated: Tables, schema: DatabaseSchema
    ) -> None:
        corpus = Tables(schema)
        corpus.merge(populated)

        assert corpus == populated

    def test_source_untouched(self, make_unit) -> None:
        a = make_unit([("main", 1)])
        b = make_unit([("helper", 2)])
        a.merge(b)

        assert b == make_unit([("helper", 2)])

    def test_merge_empty_source(self, populated: Tables, make_unit) -> None:
        stats = populated.merge(make_unit([]))

        assert stats.facts == 0
        assert populated.stats()["relations"]["functions"] == 2
        assert populated.counters.value("Function") == 3

    def test_stats(self, make_unit) -> None:
        stats = make_unit([("main", 1)]).merge(make_unit([("helper", 2)]))

        assert stats.facts == 3
        assert stats.relations == {"words": 1, "functions": 1, "calls": 1, "tiny": 0}

    def test_schema_mismatch(self, schema_data, populated: Tables) -> None:
        schema_data["name"] = "other"
        other = Tables(schema_from_dict(schema_data))

        with pytest.raises(SchemaMismatchError):
            populated.merge(other)

    def test_merge_into_itself(self, populated: Tables) -> None:
        with pytest.raises(ValueError, match="into itself"):
            populated.merge(populated)


class TestMergeOrder:
    """Tests for the dependency-order guard."""

    def test_missing_key_map(self) -> None:
        with pytest.raises(MergeOrderError, match="'names'"):
            _translate("names", {})

    def test_key_out_of_range(self) -> None:
        translate = _translate("names", {"names": [4, 5]})
        assert translate(1) == 5
        with pytest.raises(MergeOrderError) as exc_info:
            translate(2)
        assert exc_info.value.key == 2
