from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Location of the classroom the grid is anchored to.
LOCATION = (36.98949379578401, -122.06277128548504)

TILE_DEGREES = 1e-4
NEIGHBORHOOD_SIZE = 8
CACHE_SPAWN_PROBABILITY = 0.1
INITIAL_VALUE_SCALE = 100
SESSION_STORAGE_KEY = "gameState"


@dataclass(frozen=True)
class GameConfig:
    origin_lat: float = LOCATION[0]
    origin_lng: float = LOCATION[1]
    tile_degrees: float = TILE_DEGREES
    neighborhood_size: int = NEIGHBORHOOD_SIZE
    spawn_probability: float = CACHE_SPAWN_PROBABILITY
    initial_value_scale: int = INITIAL_VALUE_SCALE
    storage_key: str = SESSION_STORAGE_KEY

    def __post_init__(self) -> None:
        if not isinstance(self.tile_degrees, (int, float)) or self.tile_degrees <= 0:
            raise ValueError("tile_degrees must be a number > 0")
        if isinstance(self.neighborhood_size, bool) or not isinstance(self.neighborhood_size, int):
            raise ValueError("neighborhood_size must be an integer")
        if self.neighborhood_size < 0:
            raise ValueError("neighborhood_size must be >= 0")
        if not 0.0 <= self.spawn_probability <= 1.0:
            raise ValueError("spawn_probability must be within [0, 1]")
        if isinstance(self.initial_value_scale, bool) or not isinstance(self.initial_value_scale, int):
            raise ValueError("initial_value_scale must be an integer")
        if self.initial_value_scale < 0:
            raise ValueError("initial_value_scale must be >= 0")
        if not isinstance(self.storage_key, str) or not self.storage_key:
            raise ValueError("storage_key must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin_lat": self.origin_lat,
            "origin_lng": self.origin_lng,
            "tile_degrees": self.tile_degrees,
            "neighborhood_size": self.neighborhood_size,
            "spawn_probability": self.spawn_probability,
            "initial_value_scale": self.initial_value_scale,
            "storage_key": self.storage_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "GameConfig":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("config must be an object")
        return cls(
            origin_lat=float(data.get("origin_lat", LOCATION[0])),
            origin_lng=float(data.get("origin_lng", LOCATION[1])),
            tile_degrees=float(data.get("tile_degrees", TILE_DEGREES)),
            neighborhood_size=int(data.get("neighborhood_size", NEIGHBORHOOD_SIZE)),
            spawn_probability=float(data.get("spawn_probability", CACHE_SPAWN_PROBABILITY)),
            initial_value_scale=int(data.get("initial_value_scale", INITIAL_VALUE_SCALE)),
            storage_key=str(data.get("storage_key", SESSION_STORAGE_KEY)),
        )


DEFAULT_CONFIG = GameConfig()
