from __future__ import annotations

import math

from geocache.sim.config import CACHE_SPAWN_PROBABILITY, INITIAL_VALUE_SCALE
from geocache.sim.grid import Cell
from geocache.sim.rng import luck, luck_seed_text
from geocache.sim.tokens import Token

INITIAL_VALUE_SEED_LABEL = "initialValue"


def should_spawn(cell: Cell, probability: float = CACHE_SPAWN_PROBABILITY) -> bool:
    """Whether a cache exists at ``cell``; depends only on the cell coordinates."""
    return luck(luck_seed_text((cell.i, cell.j))) < probability


def cache_size_for_cell(cell: Cell, scale: int = INITIAL_VALUE_SCALE) -> int:
    return math.floor(luck(luck_seed_text((cell.i, cell.j, INITIAL_VALUE_SEED_LABEL))) * scale)


def generate_tokens(cell: Cell, scale: int = INITIAL_VALUE_SCALE) -> list[Token]:
    """Cold-start contents of a cache that has never been stored."""
    return [Token(i=cell.i, j=cell.j, serial=serial) for serial in range(cache_size_for_cell(cell, scale))]
