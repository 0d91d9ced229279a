from __future__ import annotations

import logging
from typing import Callable

from geocache.sim.grid import LatLng

logger = logging.getLogger(__name__)

# Codes follow the browser Geolocation API, plus 0 for "no provider at all".
UNSUPPORTED = 0
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3
FATAL_LOCATION_ERROR_CODES = {UNSUPPORTED, PERMISSION_DENIED}

PositionCallback = Callable[[LatLng], None]
ErrorCallback = Callable[["LocationError"], None]


class LocationError(Exception):
    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"location error code {code}")
        self.code = code
        self.message = message

    @property
    def fatal(self) -> bool:
        return self.code in FATAL_LOCATION_ERROR_CODES


class LocationProvider:
    """Source of live position fixes.

    The base provider has no positioning hardware and refuses every watch.
    """

    def watch_position(self, on_position: PositionCallback, on_error: ErrorCallback) -> int:
        raise LocationError(UNSUPPORTED, "live location is not supported here")

    def clear_watch(self, watch_id: int) -> None:
        """Stop delivering to ``watch_id``; unknown ids are ignored."""


class ManualLocationProvider(LocationProvider):
    """Provider fed by hand, one fix at a time."""

    def __init__(self, *, denied: bool = False) -> None:
        self.denied = denied
        self._watchers: dict[int, tuple[PositionCallback, ErrorCallback]] = {}
        self._next_watch_id = 1

    def watch_position(self, on_position: PositionCallback, on_error: ErrorCallback) -> int:
        if self.denied:
            raise LocationError(PERMISSION_DENIED, "user denied location access")
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        self._watchers[watch_id] = (on_position, on_error)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        self._watchers.pop(watch_id, None)

    def active_watch_count(self) -> int:
        return len(self._watchers)

    def push_position(self, lat: float, lng: float) -> None:
        position = LatLng(lat, lng)
        for on_position, _ in list(self._watchers.values()):
            on_position(position)

    def push_error(self, code: int, message: str = "") -> None:
        error = LocationError(code, message)
        for _, on_error in list(self._watchers.values()):
            on_error(error)


class LiveLocationFeed:
    """Start/stop wrapper around a provider watch.

    Every ``start`` opens a new generation; callbacks carrying an older
    generation are dropped, so nothing delivered after ``stop`` reaches
    ``on_position``.
    """

    def __init__(
        self,
        provider: LocationProvider,
        *,
        on_position: PositionCallback,
        on_unavailable: ErrorCallback,
    ) -> None:
        self.provider = provider
        self._on_position = on_position
        self._on_unavailable = on_unavailable
        self._watch_id: int | None = None
        self._generation = 0
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> bool:
        if self._active:
            return False
        self._generation += 1
        generation = self._generation
        self._active = True
        try:
            watch_id = self.provider.watch_position(
                lambda position: self._deliver_position(generation, position),
                lambda error: self._deliver_error(generation, error),
            )
        except LocationError as exc:
            self._active = False
            self._generation += 1
            if exc.fatal:
                self._on_unavailable(exc)
            else:
                logger.warning("live location could not start (code=%s): %s", exc.code, exc)
            return False
        if self._active and generation == self._generation:
            self._watch_id = watch_id
        else:
            # A fatal error arrived synchronously during watch_position.
            self.provider.clear_watch(watch_id)
        return self._active

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._generation += 1
        watch_id, self._watch_id = self._watch_id, None
        if watch_id is not None:
            self.provider.clear_watch(watch_id)

    def _is_current(self, generation: int) -> bool:
        return self._active and generation == self._generation

    def _deliver_position(self, generation: int, position: LatLng) -> None:
        if not self._is_current(generation):
            return
        self._on_position(position)

    def _deliver_error(self, generation: int, error: LocationError) -> None:
        if not self._is_current(generation):
            return
        if error.fatal:
            self.stop()
            self._on_unavailable(error)
            return
        logger.warning("live location error ignored (code=%s): %s", error.code, error)
