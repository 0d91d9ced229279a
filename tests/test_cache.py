import json
from collections import Counter

import pytest

from geocache.sim.cache import CACHE_POPULATED, CACHE_UNINITIALIZED, Cache
from geocache.sim.grid import Cell
from geocache.sim.spawn import cache_size_for_cell, generate_tokens
from geocache.sim.tokens import Token, decode_tokens, encode_tokens


def _cache_with(cell: Cell, tokens: list[Token]) -> Cache:
    cache = Cache(cell)
    cache.restore_from_snapshot(encode_tokens(tokens))
    return cache


def test_new_cache_is_uninitialized_and_refuses_use() -> None:
    cache = Cache(Cell(1, 1))

    assert cache.status == CACHE_UNINITIALIZED
    with pytest.raises(RuntimeError, match="not populated"):
        cache.take()
    with pytest.raises(RuntimeError, match="not populated"):
        cache.snapshot()


def test_initialize_fresh_uses_generator() -> None:
    cell = Cell(7, -3)
    cache = Cache(cell)

    cache.initialize_fresh()

    assert cache.status == CACHE_POPULATED
    assert list(cache.tokens()) == generate_tokens(cell)


def test_cache_cannot_be_populated_twice() -> None:
    cache = Cache(Cell(0, 1))
    cache.initialize_fresh()

    with pytest.raises(RuntimeError, match="already populated"):
        cache.initialize_fresh()
    with pytest.raises(RuntimeError, match="already populated"):
        cache.restore_from_snapshot("[]")


def test_take_pops_serials_in_reverse_then_none() -> None:
    cell = Cell(3, 5)
    cache = _cache_with(cell, [Token(3, 5, serial) for serial in range(42)])

    taken = [cache.take() for _ in range(42)]

    assert [token.serial for token in taken] == list(range(41, -1, -1))
    assert cache.take() is None
    assert cache.size() == 0


def test_generated_cache_drains_from_highest_serial_to_none() -> None:
    cell = next(Cell(i, j) for i in range(-20, 20) for j in range(-20, 20) if cache_size_for_cell(Cell(i, j)) >= 10)
    size = cache_size_for_cell(cell)
    cache = Cache(cell)
    cache.initialize_fresh()

    taken = [cache.take() for _ in range(size)]

    assert [token.serial for token in taken] == list(range(size - 1, -1, -1))
    assert all((token.i, token.j) == (cell.i, cell.j) for token in taken)
    assert cache.take() is None


def test_snapshot_round_trip_obeys_stack_law() -> None:
    tokens = [Token(0, 0, 2), Token(4, -1, 0), Token(0, 0, 9)]
    original = _cache_with(Cell(0, 0), tokens)

    restored = Cache(Cell(0, 0))
    restored.restore_from_snapshot(original.snapshot())

    assert restored.snapshot() == original.snapshot()
    assert [restored.take() for _ in tokens] == list(reversed(tokens))


def test_put_accepts_tokens_from_other_cells_and_keeps_provenance() -> None:
    cache = _cache_with(Cell(2, 2), [])
    foreign = Token(-5, 8, 13)

    cache.put(foreign)

    assert cache.peek() == foreign
    assert cache.take().label() == "-5:8#13"


def test_put_rejects_non_tokens() -> None:
    cache = _cache_with(Cell(2, 2), [])

    with pytest.raises(ValueError):
        cache.put({"i": 1, "j": 2, "serial": 3})


def test_take_put_sequence_conserves_tokens() -> None:
    cache = _cache_with(Cell(1, 2), [Token(1, 2, serial) for serial in range(5)])
    inventory: list[Token] = [Token(9, 9, 0)]
    before = Counter(cache.tokens()) + Counter(inventory)

    for step in ("take", "take", "put", "take", "put", "put", "put", "take"):
        if step == "take":
            token = cache.take()
            if token is not None:
                inventory.append(token)
        elif inventory:
            cache.put(inventory.pop())

    assert Counter(cache.tokens()) + Counter(inventory) == before


def test_snapshot_is_a_json_list_of_token_records() -> None:
    cache = _cache_with(Cell(1, 1), [Token(1, 1, 0), Token(1, 1, 1)])

    assert json.loads(cache.snapshot()) == [
        {"i": 1, "j": 1, "serial": 0},
        {"i": 1, "j": 1, "serial": 1},
    ]


def test_decode_rejects_malformed_snapshots() -> None:
    with pytest.raises(ValueError, match="not valid JSON"):
        decode_tokens("[{")
    with pytest.raises(ValueError, match="must be a list"):
        decode_tokens('{"i": 1}')
    with pytest.raises(ValueError, match="missing fields"):
        decode_tokens('[{"i": 1, "j": 2}]')
    with pytest.raises(ValueError, match="serial must be >= 0"):
        decode_tokens('[{"i": 1, "j": 2, "serial": -1}]')


def test_restore_failure_leaves_cache_uninitialized() -> None:
    cache = Cache(Cell(1, 1))

    with pytest.raises(ValueError):
        cache.restore_from_snapshot("not json")

    assert cache.status == CACHE_UNINITIALIZED
