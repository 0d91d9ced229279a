from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from geocache.content.io import load_session, save_session
from geocache.content.storage import KeyValueStore
from geocache.sim.cache import Cache, CacheView
from geocache.sim.config import DEFAULT_CONFIG, GameConfig
from geocache.sim.directory import CacheDirectory
from geocache.sim.grid import Cell, CoordinateGrid, LatLng, is_valid_position
from geocache.sim.location import LiveLocationFeed, LocationError, LocationProvider
from geocache.sim.session import PlayerState, SessionState
from geocache.sim.spawn import should_spawn

logger = logging.getLogger(__name__)

MAX_ACTION_TRACE = 256
MAX_COMMANDS_PER_DRAIN = 10_000

MOVE_PLAYER_COMMAND = "move_player"
MOVE_TO_COMMAND = "move_to"
COLLECT_COMMAND = "collect"
DEPOSIT_COMMAND = "deposit"
RESET_SESSION_COMMAND = "reset_session"
TOGGLE_LIVE_LOCATION_COMMAND = "toggle_live_location"
COMMAND_TYPES = {
    MOVE_PLAYER_COMMAND,
    MOVE_TO_COMMAND,
    COLLECT_COMMAND,
    DEPOSIT_COMMAND,
    RESET_SESSION_COMMAND,
    TOGGLE_LIVE_LOCATION_COMMAND,
}

EMPTY_CACHE_MESSAGE = "No more coins to collect!"
EMPTY_INVENTORY_MESSAGE = "Not enough coins to deposit :("
LIVE_LOCATION_UNAVAILABLE_MESSAGE = "Live location is unavailable; use the arrow buttons to move."


def _is_json_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str))


@dataclass
class SessionCommand:
    command_type: str
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.command_type not in COMMAND_TYPES:
            raise ValueError(f"unknown command_type: {self.command_type}")
        if not isinstance(self.params, dict):
            raise ValueError("params must be a dict")
        for key, value in self.params.items():
            if not isinstance(key, str) or not _is_json_primitive(value):
                raise ValueError("params must map strings to JSON primitives")

    def to_dict(self) -> dict[str, Any]:
        return {"command_type": self.command_type, "params": dict(self.params)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionCommand":
        return cls(command_type=str(data["command_type"]), params=dict(data.get("params", {})))


def coin_status(count: int) -> str:
    if count == 0:
        return "No coins yet..."
    return f"You have {count} coins"


class GameSession:
    """Single owner of the session state.

    Every input becomes a ``SessionCommand``; commands run one at a time, each
    to completion, and each mutation is written through to the cache directory
    and flushed to the store before the next command starts.
    """

    def __init__(
        self,
        state: SessionState,
        *,
        config: GameConfig = DEFAULT_CONFIG,
        store: KeyValueStore | None = None,
        location_provider: LocationProvider | None = None,
    ) -> None:
        self.config = config
        self.grid = CoordinateGrid.from_config(config)
        self.state = state
        self.store = store
        self.caches: dict[Cell, Cache] = {}
        self.status_message = coin_status(state.player.coin_count())
        self.notices: list[str] = []
        self.live_location_disabled = False
        self.live_location = LiveLocationFeed(
            location_provider if location_provider is not None else LocationProvider(),
            on_position=self._on_live_position,
            on_unavailable=self._on_live_location_unavailable,
        )
        self._queue: deque[SessionCommand] = deque()
        self._draining = False
        self._action_trace: list[dict[str, Any]] = []
        self.refresh_neighborhood()

    @classmethod
    def start(
        cls,
        store: KeyValueStore,
        *,
        config: GameConfig = DEFAULT_CONFIG,
        location_provider: LocationProvider | None = None,
    ) -> "GameSession":
        """Resume the stored session, or begin a fresh one when none is usable."""
        state = load_session(store, key=config.storage_key)
        if state is None:
            state = SessionState.fresh(config)
        return cls(state, config=config, store=store, location_provider=location_provider)

    @property
    def player(self) -> PlayerState:
        return self.state.player

    @property
    def directory(self) -> CacheDirectory:
        return self.state.directory

    def player_cell(self) -> Cell:
        return self.grid.cell_for_point(self.player.position)

    def cache_at(self, cell: Cell) -> Cache | None:
        return self.caches.get(cell)

    def visible_caches(self) -> list[CacheView]:
        return [
            CacheView(cell=cell, bounds=self.grid.bounds_for_cell(cell), size=cache.size())
            for cell, cache in self.caches.items()
        ]

    def refresh_neighborhood(self) -> None:
        materialized: dict[Cell, Cache] = {}
        for cell in self.grid.cells_near(self.player.position, self.config.neighborhood_size):
            if not should_spawn(cell, self.config.spawn_probability):
                continue
            cache = self.caches.get(cell)
            if cache is None:
                cache = self._materialize(cell)
            materialized[cell] = cache
        self.caches = materialized

    def _materialize(self, cell: Cell) -> Cache:
        cache = Cache(cell)
        snapshot = self.directory.get(cell)
        if snapshot is None:
            cache.initialize_fresh(self.config.initial_value_scale)
        else:
            cache.restore_from_snapshot(snapshot)
        return cache

    def persist(self) -> bool:
        if self.store is None:
            return True
        return save_session(self.store, self.state, key=self.config.storage_key)

    def get_action_trace(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._action_trace)

    def _append_action_trace(self, command: SessionCommand, outcome: str, **details: Any) -> None:
        self._action_trace.append({**command.to_dict(), "outcome": outcome, **details})
        if len(self._action_trace) > MAX_ACTION_TRACE:
            del self._action_trace[: len(self._action_trace) - MAX_ACTION_TRACE]

    def submit(self, command: SessionCommand | dict[str, Any]) -> None:
        normalized = command if isinstance(command, SessionCommand) else SessionCommand.from_dict(command)
        self._queue.append(normalized)
        if self._draining:
            return
        self._drain()

    def _drain(self) -> None:
        self._draining = True
        try:
            executed = 0
            while self._queue:
                if executed >= MAX_COMMANDS_PER_DRAIN:
                    raise RuntimeError("MAX_COMMANDS_PER_DRAIN exceeded while draining session commands")
                self._execute_command(self._queue.popleft())
                executed += 1
        except Exception:
            # Commands queued behind a failed one are dropped with it.
            self._queue.clear()
            raise
        finally:
            self._draining = False

    def move_player(self, di: int, dj: int) -> None:
        self.submit(SessionCommand(MOVE_PLAYER_COMMAND, {"di": int(di), "dj": int(dj)}))

    def move_to(self, lat: float, lng: float) -> None:
        self.submit(SessionCommand(MOVE_TO_COMMAND, {"lat": float(lat), "lng": float(lng)}))

    def collect(self, cell: Cell) -> None:
        self.submit(SessionCommand(COLLECT_COMMAND, {"i": cell.i, "j": cell.j}))

    def deposit(self, cell: Cell) -> None:
        self.submit(SessionCommand(DEPOSIT_COMMAND, {"i": cell.i, "j": cell.j}))

    def reset_session(self) -> None:
        self.submit(SessionCommand(RESET_SESSION_COMMAND))

    def toggle_live_location(self) -> None:
        self.submit(SessionCommand(TOGGLE_LIVE_LOCATION_COMMAND))

    def close(self) -> None:
        self.live_location.stop()

    def _execute_command(self, command: SessionCommand) -> None:
        params = command.params
        if command.command_type == MOVE_PLAYER_COMMAND:
            position = self.grid.offset_position(self.player.position, int(params.get("di", 0)), int(params.get("dj", 0)))
            self._execute_move(command, position)
        elif command.command_type == MOVE_TO_COMMAND:
            self._execute_move(command, LatLng(float(params["lat"]), float(params["lng"])))
        elif command.command_type == COLLECT_COMMAND:
            self._execute_collect(command, self.grid.cell(int(params["i"]), int(params["j"])))
        elif command.command_type == DEPOSIT_COMMAND:
            self._execute_deposit(command, self.grid.cell(int(params["i"]), int(params["j"])))
        elif command.command_type == RESET_SESSION_COMMAND:
            self._execute_reset(command)
        elif command.command_type == TOGGLE_LIVE_LOCATION_COMMAND:
            self._execute_toggle_live_location(command)

    def _execute_move(self, command: SessionCommand, position: LatLng) -> None:
        if not is_valid_position(position):
            logger.warning("ignoring move to invalid position (%r, %r)", position.lat, position.lng)
            self._append_action_trace(command, "invalid_position")
            return
        self.player.move_to(position)
        saved = self.persist()
        self.refresh_neighborhood()
        cell = self.player_cell()
        self._append_action_trace(command, "moved", cell=cell.to_dict(), saved=saved)

    def _execute_collect(self, command: SessionCommand, cell: Cell) -> None:
        cache = self.caches.get(cell)
        if cache is None:
            self.status_message = f"There is no cache at {cell.i},{cell.j}."
            self._append_action_trace(command, "no_cache")
            return
        token = cache.take()
        if token is None:
            self.status_message = EMPTY_CACHE_MESSAGE
            self._append_action_trace(command, "cache_empty")
            return
        self.player.push_coin(token)
        self.directory.set(cell, cache.snapshot())
        self.status_message = coin_status(self.player.coin_count())
        saved = self.persist()
        self._append_action_trace(command, "collected", token=token.to_dict(), saved=saved)

    def _execute_deposit(self, command: SessionCommand, cell: Cell) -> None:
        cache = self.caches.get(cell)
        if cache is None:
            self.status_message = f"There is no cache at {cell.i},{cell.j}."
            self._append_action_trace(command, "no_cache")
            return
        token = self.player.pop_coin()
        if token is None:
            self.status_message = EMPTY_INVENTORY_MESSAGE
            self._append_action_trace(command, "inventory_empty")
            return
        cache.put(token)
        self.directory.set(cell, cache.snapshot())
        self.status_message = coin_status(self.player.coin_count())
        saved = self.persist()
        self._append_action_trace(command, "deposited", token=token.to_dict(), saved=saved)

    def _execute_reset(self, command: SessionCommand) -> None:
        fresh = SessionState.fresh(self.config)
        self.state.player = fresh.player
        self.directory.clear()
        self.caches = {}
        self.refresh_neighborhood()
        self.status_message = coin_status(0)
        saved = self.persist()
        self._append_action_trace(command, "reset", saved=saved)

    def _execute_toggle_live_location(self, command: SessionCommand) -> None:
        if self.live_location_disabled:
            self._append_action_trace(command, "unavailable")
            return
        if self.live_location.is_active:
            self.live_location.stop()
            self.status_message = "Live location off."
            self._append_action_trace(command, "stopped")
            return
        if self.live_location.start():
            self.status_message = "Live location on."
            self._append_action_trace(command, "started")
        else:
            self._append_action_trace(command, "unavailable" if self.live_location_disabled else "start_failed")

    def _on_live_position(self, position: LatLng) -> None:
        self.submit(SessionCommand(MOVE_TO_COMMAND, {"lat": position.lat, "lng": position.lng}))

    def _on_live_location_unavailable(self, error: LocationError) -> None:
        logger.info("live location disabled (code=%s): %s", error.code, error)
        self.live_location_disabled = True
        if LIVE_LOCATION_UNAVAILABLE_MESSAGE not in self.notices:
            self.notices.append(LIVE_LOCATION_UNAVAILABLE_MESSAGE)
            self.status_message = LIVE_LOCATION_UNAVAILABLE_MESSAGE
