from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from geocache.sim.config import DEFAULT_CONFIG, GameConfig
from geocache.sim.directory import CacheDirectory
from geocache.sim.grid import LatLng
from geocache.sim.tokens import Token, tokens_from_list, tokens_to_list


@dataclass
class PlayerState:
    position: LatLng
    coins: list[Token] = field(default_factory=list)
    path: list[LatLng] = field(default_factory=list)

    def coin_count(self) -> int:
        return len(self.coins)

    def push_coin(self, token: Token) -> None:
        self.coins.append(token)

    def pop_coin(self) -> Token | None:
        if not self.coins:
            return None
        return self.coins.pop()

    def move_to(self, position: LatLng) -> None:
        self.position = position
        self.path.append(position)


@dataclass
class SessionState:
    """Everything that survives a reload: the player and the cache directory."""

    player: PlayerState
    directory: CacheDirectory = field(default_factory=CacheDirectory)

    @classmethod
    def fresh(cls, config: GameConfig = DEFAULT_CONFIG) -> "SessionState":
        start = LatLng(config.origin_lat, config.origin_lng)
        return cls(player=PlayerState(position=start, coins=[], path=[start]))

    def to_dict(self) -> dict[str, Any]:
        return {
            "playerPosition": self.player.position.to_dict(),
            "playerCoins": tokens_to_list(self.player.coins),
            "playerPath": [point.to_dict() for point in self.player.path],
            "caches": self.directory.to_pairs(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SessionState":
        return cls(
            player=PlayerState(
                position=LatLng.from_dict(payload["playerPosition"]),
                coins=tokens_from_list(payload["playerCoins"], field_name="playerCoins"),
                path=[LatLng.from_dict(point) for point in payload["playerPath"]],
            ),
            directory=CacheDirectory.from_pairs(payload["caches"]),
        )
