"""Data models for corpusdb."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class UnitRecord:
    """A per-unit store found in a workspace."""

    unit_id: str
    path: Path

    @classmethod
    def from_path(cls, workspace_root: Path, path: Path) -> UnitRecord:
        """Identify a unit by its path relative to the workspace."""
        return cls(unit_id=path.relative_to(workspace_root).as_posix(), path=path)


class MergeStats:
    """Statistics from merging one store into another."""

    def __init__(self) -> None:
        self.facts: int = 0
        self.interned: int = 0
        self.shifted: int = 0
        self.relations: dict[str, int] = {}

    def add(self, other: MergeStats) -> None:
        self.facts += other.facts
        self.interned += other.interned
        self.shifted += other.shifted
        for name, count in other.relations.items():
            self.relations[name] = self.relations.get(name, 0) + count

    def __repr__(self) -> str:
        return (
            f"MergeStats(facts={self.facts}, interned={self.interned}, "
            f"shifted={self.shifted})"
        )


class UpdateReport:
    """Statistics from one store manager run."""

    def __init__(self) -> None:
        self.merged: list[str] = []
        self.unchanged: int = 0
        self.errors: list[str] = []
        self.stats = MergeStats()

    def __repr__(self) -> str:
        return (
            f"UpdateReport(merged={len(self.merged)}, unchanged={self.unchanged}, "
            f"errors={len(self.errors)}, facts={self.stats.facts})"
        )
