from __future__ import annotations

import math
from typing import Any

from geocache.sim.grid import MAX_LATITUDE, MAX_LONGITUDE, parse_cell_key

REQUIRED_SESSION_FIELDS = {"playerPosition", "playerCoins", "playerPath", "caches"}
REQUIRED_TOKEN_FIELDS = {"i", "j", "serial"}
AXIS_LIMITS = {"lat": MAX_LATITUDE, "lng": MAX_LONGITUDE}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _is_int(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, int)


def _validate_position(value: Any, *, field_name: str) -> None:
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object")
    for axis, limit in AXIS_LIMITS.items():
        coordinate = value.get(axis)
        if not _is_number(coordinate):
            raise ValueError(f"{field_name}.{axis} must be a finite number")
        if not -limit <= coordinate <= limit:
            raise ValueError(f"{field_name}.{axis} must be within [-{limit:g}, {limit:g}]")


def _validate_token(value: Any, *, field_name: str) -> None:
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object")
    missing = REQUIRED_TOKEN_FIELDS - set(value.keys())
    if missing:
        raise ValueError(f"{field_name} missing fields: {sorted(missing)}")
    for key in sorted(REQUIRED_TOKEN_FIELDS):
        if not _is_int(value[key]):
            raise ValueError(f"{field_name}.{key} must be an integer")
    if value["serial"] < 0:
        raise ValueError(f"{field_name}.serial must be >= 0")


def validate_session_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("session payload must be an object")

    missing = REQUIRED_SESSION_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"session payload missing fields: {sorted(missing)}")

    _validate_position(payload["playerPosition"], field_name="playerPosition")

    coins = payload["playerCoins"]
    if not isinstance(coins, list):
        raise ValueError("playerCoins must be a list")
    for index, token in enumerate(coins):
        _validate_token(token, field_name=f"playerCoins[{index}]")

    path = payload["playerPath"]
    if not isinstance(path, list):
        raise ValueError("playerPath must be a list")
    for index, point in enumerate(path):
        _validate_position(point, field_name=f"playerPath[{index}]")

    caches = payload["caches"]
    if not isinstance(caches, list):
        raise ValueError("caches must be a list")
    seen_cells: set[tuple[int, int]] = set()
    for index, row in enumerate(caches):
        if not isinstance(row, dict):
            raise ValueError(f"caches[{index}] must be an object")
        key = row.get("key")
        if not isinstance(key, str) or not key:
            raise ValueError(f"caches[{index}].key must be a non-empty string")
        # "03:5" and "3:5" name the same cell.
        coordinates = parse_cell_key(key)
        if coordinates in seen_cells:
            raise ValueError(f"duplicate cache key: {key}")
        seen_cells.add(coordinates)
        if not isinstance(row.get("value"), str):
            raise ValueError(f"caches[{index}].value must be a string")
