from __future__ import annotations

from dataclasses import dataclass

from geocache.sim.config import INITIAL_VALUE_SCALE
from geocache.sim.grid import Bounds, Cell
from geocache.sim.spawn import generate_tokens
from geocache.sim.tokens import Token, decode_tokens, encode_tokens

CACHE_UNINITIALIZED = "uninitialized"
CACHE_POPULATED = "populated"


class Cache:
    """Stack of tokens bound to one cell.

    A cache starts uninitialized and becomes populated exactly once, either from
    the deterministic generator or from a stored snapshot. Persisting the
    snapshot after a mutation is the caller's job.
    """

    def __init__(self, cell: Cell) -> None:
        self.cell = cell
        self._tokens: list[Token] = []
        self._status = CACHE_UNINITIALIZED

    def __repr__(self) -> str:
        return f"Cache(cell=({self.cell.i},{self.cell.j}), status={self._status}, size={len(self._tokens)})"

    @property
    def status(self) -> str:
        return self._status

    @property
    def is_populated(self) -> bool:
        return self._status == CACHE_POPULATED

    def _require_uninitialized(self) -> None:
        if self._status != CACHE_UNINITIALIZED:
            raise RuntimeError(f"cache at {self.cell.i}:{self.cell.j} is already populated")

    def _require_populated(self) -> None:
        if self._status != CACHE_POPULATED:
            raise RuntimeError(f"cache at {self.cell.i}:{self.cell.j} is not populated")

    def initialize_fresh(self, scale: int = INITIAL_VALUE_SCALE) -> None:
        self._require_uninitialized()
        self._tokens = generate_tokens(self.cell, scale)
        self._status = CACHE_POPULATED

    def restore_from_snapshot(self, snapshot: str) -> None:
        self._require_uninitialized()
        self._tokens = decode_tokens(snapshot)
        self._status = CACHE_POPULATED

    def take(self) -> Token | None:
        self._require_populated()
        if not self._tokens:
            return None
        return self._tokens.pop()

    def put(self, token: Token) -> None:
        self._require_populated()
        if not isinstance(token, Token):
            raise ValueError("put() requires a Token")
        self._tokens.append(token)

    def peek(self) -> Token | None:
        self._require_populated()
        return self._tokens[-1] if self._tokens else None

    def tokens(self) -> tuple[Token, ...]:
        return tuple(self._tokens)

    def size(self) -> int:
        return len(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def snapshot(self) -> str:
        self._require_populated()
        return encode_tokens(self._tokens)


@dataclass(frozen=True)
class CacheView:
    """What the map renderer needs to draw one materialized cache."""

    cell: Cell
    bounds: Bounds
    size: int

    def description(self) -> str:
        return f'There is a cache here at "{self.cell.i},{self.cell.j}". It has {self.size} coins.'
