"""Dependency graph between interning tables: ordering and cycle detection."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from corpusdb.core.exceptions import SchemaError

if TYPE_CHECKING:
    from corpusdb.core.schema.models import DatabaseSchema, InterningTableDecl


class InterningGraph:
    """Directed graph: table -> tables whose keys appear in its value.

    Uses adjacency lists keyed by table name, in declaration order.
    """

    __slots__ = ("_tables", "_deps", "_users")

    def __init__(self) -> None:
        self._tables: dict[str, InterningTableDecl] = {}
        self._deps: dict[str, list[str]] = {}
        self._users: dict[str, list[str]] = {}

    @classmethod
    def from_schema(cls, schema: DatabaseSchema) -> InterningGraph:
        graph = cls()
        keys = {table.key: table.name for table in schema.interning_tables}
        for table in schema.interning_tables:
            graph.add_table(table)
        for table in schema.interning_tables:
            for type_name in table.value_types:
                if type_name in keys:
                    graph.add_dependency(table.name, keys[type_name])
        return graph

    def add_table(self, table: InterningTableDecl) -> None:
        """Add a table node. O(1)."""
        self._tables[table.name] = table
        self._deps.setdefault(table.name, [])
        self._users.setdefault(table.name, [])

    def add_dependency(self, table: str, depends_on: str) -> None:
        """Record that ``table`` interns keys of ``depends_on``. O(1)."""
        if depends_on not in self._deps[table]:
            self._deps[table].append(depends_on)
            self._users[depends_on].append(table)

    def dependencies(self, table: str) -> list[str]:
        return list(self._deps.get(table, []))

    def find_cycle(self) -> list[str] | None:
        """Return one dependency cycle as a list of table names, if any."""
        white, gray, black = 0, 1, 2
        color: dict[str, int] = {name: white for name in self._tables}
        stack: list[str] = []

        def dfs(name: str) -> list[str] | None:
            color[name] = gray
            stack.append(name)
            for dep in self._deps[name]:
                if color[dep] == gray:
                    return stack[stack.index(dep) :] + [dep]
                if color[dep] == white:
                    cycle = dfs(dep)
                    if cycle is not None:
                        return cycle
            stack.pop()
            color[name] = black
            return None

        for name in self._tables:
            if color[name] == white:
                cycle = dfs(name)
                if cycle is not None:
                    return cycle
        return None

    def topological_order(self) -> list[InterningTableDecl]:
        """Kahn's algorithm, dependencies first. O(V + E).

        Ties are broken by declaration order so the result is deterministic.
        Raises SchemaError if the tables depend on each other cyclically.
        """
        remaining = {name: len(deps) for name, deps in self._deps.items()}
        queue: deque[str] = deque(name for name, count in remaining.items() if count == 0)
        result: list[InterningTableDecl] = []

        while queue:
            name = queue.popleft()
            result.append(self._tables[name])
            for user in self._users[name]:
                remaining[user] -= 1
                if remaining[user] == 0:
                    queue.append(user)

        if len(result) != len(self._tables):
            cycle = self.find_cycle() or sorted(n for n, c in remaining.items() if c)
            raise SchemaError(f"Interning tables depend on each other: {' -> '.join(cycle)}")
        return result

    def __len__(self) -> int:
        return len(self._tables)

    def __repr__(self) -> str:
        edges = sum(len(deps) for deps in self._deps.values())
        return f"InterningGraph(tables={len(self._tables)}, dependencies={edges})"
