from __future__ import annotations

from typing import Any, Iterator

from geocache.sim.grid import Cell, cell_key, parse_cell_key


class CacheDirectory:
    """Last-known snapshot for every cache the player has ever changed.

    Keyed by the ``"i:j"`` string of a cell so entries survive cells being
    re-materialized. Iteration follows first-write order.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, cell: object) -> bool:
        return isinstance(cell, Cell) and cell_key(cell) in self._snapshots

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshots)

    def get(self, cell: Cell) -> str | None:
        return self._snapshots.get(cell_key(cell))

    def set(self, cell: Cell, snapshot: str) -> None:
        if not isinstance(snapshot, str):
            raise ValueError("cache snapshot must be a string")
        self._snapshots[cell_key(cell)] = snapshot

    def has(self, cell: Cell) -> bool:
        return cell_key(cell) in self._snapshots

    def clear(self) -> None:
        self._snapshots.clear()

    def items(self) -> list[tuple[str, str]]:
        return list(self._snapshots.items())

    def to_pairs(self) -> list[dict[str, str]]:
        return [{"key": key, "value": value} for key, value in self._snapshots.items()]

    @classmethod
    def from_pairs(cls, pairs: Any) -> "CacheDirectory":
        if not isinstance(pairs, list):
            raise ValueError("caches must be a list")
        directory = cls()
        for index, row in enumerate(pairs):
            if not isinstance(row, dict):
                raise ValueError(f"caches[{index}] must be an object")
            key = row.get("key")
            value = row.get("value")
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValueError(f"caches[{index}] requires string key and value")
            i, j = parse_cell_key(key)
            # Normalize "03:5"-style keys to the canonical form.
            canonical = f"{i}:{j}"
            if canonical in directory._snapshots:
                raise ValueError(f"duplicate cache key: {key}")
            directory._snapshots[canonical] = value
        return directory
