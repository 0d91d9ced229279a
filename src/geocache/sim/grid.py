from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from geocache.sim.config import DEFAULT_CONFIG, GameConfig

# Quotients are rounded before flooring so that positions reached by adding
# whole tiles to the origin land in the intended cell despite float noise.
GRID_INDEX_PRECISION = 9
MAX_LATITUDE = 90.0
MAX_LONGITUDE = 180.0


@dataclass(frozen=True)
class LatLng:
    """Continuous geographic position in degrees."""

    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LatLng":
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))


@dataclass(frozen=True, order=True)
class Cell:
    """Grid coordinate (i, j) of a tile relative to the grid origin."""

    i: int
    j: int

    def to_dict(self) -> dict[str, int]:
        return {"i": self.i, "j": self.j}


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def south_west(self) -> LatLng:
        return LatLng(self.south, self.west)

    @property
    def north_east(self) -> LatLng:
        return LatLng(self.north, self.east)

    def area(self) -> float:
        return (self.north - self.south) * (self.east - self.west)

    def contains(self, position: LatLng) -> bool:
        return self.south <= position.lat < self.north and self.west <= position.lng < self.east

    def to_dict(self) -> dict[str, float]:
        return {"south": self.south, "west": self.west, "north": self.north, "east": self.east}


def is_valid_position(position: LatLng) -> bool:
    """Finite coordinates inside the latitude and longitude ranges."""
    lat, lng = position.lat, position.lng
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -MAX_LATITUDE <= lat <= MAX_LATITUDE and -MAX_LONGITUDE <= lng <= MAX_LONGITUDE


def cell_key(cell: Cell) -> str:
    """Canonical directory key for a cell: ``"i:j"``."""
    return f"{cell.i}:{cell.j}"


def parse_cell_key(key: str) -> tuple[int, int]:
    if not isinstance(key, str):
        raise ValueError("cell key must be a string")
    parts = key.split(":")
    if len(parts) != 2:
        raise ValueError(f"cell key must look like 'i:j': {key!r}")
    try:
        return (int(parts[0]), int(parts[1]))
    except ValueError:
        raise ValueError(f"cell key must contain integers: {key!r}") from None


class CoordinateGrid:
    """Square grid of fixed-width tiles anchored at a geographic origin.

    Cells are canonicalized: every request for the same ``(i, j)`` returns the
    same ``Cell`` object for the lifetime of the grid.
    """

    def __init__(self, origin: LatLng, tile_degrees: float) -> None:
        if tile_degrees <= 0:
            raise ValueError("tile_degrees must be > 0")
        self.origin = origin
        self.tile_degrees = tile_degrees
        self._known_cells: dict[tuple[int, int], Cell] = {}

    @classmethod
    def from_config(cls, config: GameConfig = DEFAULT_CONFIG) -> "CoordinateGrid":
        return cls(origin=LatLng(config.origin_lat, config.origin_lng), tile_degrees=config.tile_degrees)

    def cell(self, i: int, j: int) -> Cell:
        key = (int(i), int(j))
        known = self._known_cells.get(key)
        if known is None:
            known = Cell(i=key[0], j=key[1])
            self._known_cells[key] = known
        return known

    def cell_from_key(self, key: str) -> Cell:
        i, j = parse_cell_key(key)
        return self.cell(i, j)

    def known_cell_count(self) -> int:
        return len(self._known_cells)

    def _index(self, offset: float) -> int:
        quotient = offset / self.tile_degrees
        if not math.isfinite(quotient):
            raise ValueError(f"position offset {offset!r} does not map to a cell")
        return math.floor(round(quotient, GRID_INDEX_PRECISION))

    def cell_for_point(self, position: LatLng) -> Cell:
        """Cell whose tile holds ``position``.

        Points within 1e-9 of a tile below its northern or eastern edge count as
        lying on that edge, so they map to the next cell even though
        ``Bounds.contains`` of the lower cell still accepts them. Raises
        ``ValueError`` for non-finite coordinates.
        """
        return self.cell(
            self._index(position.lat - self.origin.lat),
            self._index(position.lng - self.origin.lng),
        )

    def bounds_for_cell(self, cell: Cell) -> Bounds:
        width = self.tile_degrees
        return Bounds(
            south=self.origin.lat + cell.i * width,
            west=self.origin.lng + cell.j * width,
            north=self.origin.lat + (cell.i + 1) * width,
            east=self.origin.lng + (cell.j + 1) * width,
        )

    def cell_center(self, cell: Cell) -> LatLng:
        width = self.tile_degrees
        return LatLng(
            self.origin.lat + (cell.i + 0.5) * width,
            self.origin.lng + (cell.j + 0.5) * width,
        )

    def offset_position(self, position: LatLng, di: int, dj: int) -> LatLng:
        return LatLng(position.lat + di * self.tile_degrees, position.lng + dj * self.tile_degrees)

    def cells_near(self, position: LatLng, radius: int) -> list[Cell]:
        """Square of ``(2 * radius) ** 2`` cells around ``position``, row-major over i then j."""
        if isinstance(radius, bool) or not isinstance(radius, int):
            raise ValueError("radius must be an integer")
        if radius < 0:
            raise ValueError("radius must be >= 0")
        center = self.cell_for_point(position)
        return [
            self.cell(i, j)
            for i in range(center.i - radius, center.i + radius)
            for j in range(center.j - radius, center.j + radius)
        ]
