import logging

import pytest

from geocache.content.storage import MemoryStore
from geocache.sim.config import LOCATION, TILE_DEGREES
from geocache.sim.core import LIVE_LOCATION_UNAVAILABLE_MESSAGE, GameSession
from geocache.sim.grid import LatLng
from geocache.sim.location import (
    PERMISSION_DENIED,
    POSITION_UNAVAILABLE,
    TIMEOUT,
    LiveLocationFeed,
    LocationError,
    LocationProvider,
    ManualLocationProvider,
)


def _session(provider: LocationProvider | None = None) -> GameSession:
    return GameSession.start(MemoryStore(), location_provider=provider)


def test_live_fix_moves_player_like_a_manual_move() -> None:
    provider = ManualLocationProvider()
    store = MemoryStore()
    session = GameSession.start(store, location_provider=provider)

    session.toggle_live_location()
    provider.push_position(LOCATION[0] + 2.5 * TILE_DEGREES, LOCATION[1] - 0.5 * TILE_DEGREES)

    assert session.live_location.is_active
    assert session.player_cell() is session.grid.cell(2, -1)
    assert session.player.path[-1] == LatLng(LOCATION[0] + 2.5 * TILE_DEGREES, LOCATION[1] - 0.5 * TILE_DEGREES)
    assert session.get_action_trace()[-1]["command_type"] == "move_to"
    assert store.get_item("gameState") is not None


def test_toggle_twice_stops_and_no_callback_fires_after() -> None:
    provider = ManualLocationProvider()
    session = _session(provider)

    session.toggle_live_location()
    session.toggle_live_location()
    provider.push_position(LOCATION[0] + 1.0, LOCATION[1])

    assert not session.live_location.is_active
    assert provider.active_watch_count() == 0
    assert session.player.path == [LatLng(*LOCATION)]


def test_stop_is_idempotent() -> None:
    provider = ManualLocationProvider()
    seen: list[LatLng] = []
    feed = LiveLocationFeed(provider, on_position=seen.append, on_unavailable=lambda error: None)

    assert feed.start() is True
    assert feed.start() is False
    feed.stop()
    feed.stop()
    provider.push_position(1.0, 2.0)

    assert seen == []
    assert provider.active_watch_count() == 0


def test_stale_callback_from_previous_watch_is_ignored() -> None:
    captured = []

    class _LeakyProvider(LocationProvider):
        def watch_position(self, on_position, on_error) -> int:
            captured.append(on_position)
            return len(captured)

    seen: list[LatLng] = []
    feed = LiveLocationFeed(_LeakyProvider(), on_position=seen.append, on_unavailable=lambda error: None)
    feed.start()
    feed.stop()
    feed.start()

    captured[0](LatLng(1.0, 1.0))
    captured[1](LatLng(2.0, 2.0))

    assert seen == [LatLng(2.0, 2.0)]


def test_unsupported_provider_disables_feature_with_one_notice() -> None:
    session = _session()

    session.toggle_live_location()
    session.toggle_live_location()

    assert session.live_location_disabled
    assert not session.live_location.is_active
    assert session.notices == [LIVE_LOCATION_UNAVAILABLE_MESSAGE]
    assert session.status_message == LIVE_LOCATION_UNAVAILABLE_MESSAGE
    assert [entry["outcome"] for entry in session.get_action_trace()] == ["unavailable", "unavailable"]


def test_permission_denied_after_start_disables_feature() -> None:
    provider = ManualLocationProvider()
    session = _session(provider)
    session.toggle_live_location()

    provider.push_error(PERMISSION_DENIED, "denied")
    provider.push_position(LOCATION[0] + 1.0, LOCATION[1])

    assert session.live_location_disabled
    assert provider.active_watch_count() == 0
    assert session.notices == [LIVE_LOCATION_UNAVAILABLE_MESSAGE]
    assert len(session.player.path) == 1


def test_denied_on_start_reports_unavailable() -> None:
    session = _session(ManualLocationProvider(denied=True))

    session.toggle_live_location()

    assert session.live_location_disabled
    assert session.notices == [LIVE_LOCATION_UNAVAILABLE_MESSAGE]


def test_transient_errors_are_logged_and_subscription_continues(caplog) -> None:
    provider = ManualLocationProvider()
    session = _session(provider)
    session.toggle_live_location()

    with caplog.at_level(logging.WARNING, logger="geocache.sim.location"):
        provider.push_error(TIMEOUT, "slow fix")
        provider.push_error(POSITION_UNAVAILABLE, "no signal")
    provider.push_position(LOCATION[0] + 1.5 * TILE_DEGREES, LOCATION[1] + 0.5 * TILE_DEGREES)

    assert "slow fix" in caplog.text
    assert "no signal" in caplog.text
    assert session.live_location.is_active
    assert not session.live_location_disabled
    assert session.player_cell() is session.grid.cell(1, 0)


def test_fixes_delivered_during_a_command_are_queued_in_order() -> None:
    provider = ManualLocationProvider()
    session = _session(provider)
    session.toggle_live_location()
    first = (LOCATION[0] + 0.5 * TILE_DEGREES, LOCATION[1] + 0.5 * TILE_DEGREES)
    second = (LOCATION[0] + 5.5 * TILE_DEGREES, LOCATION[1] + 0.5 * TILE_DEGREES)

    original_persist = session.persist
    pushed = []

    def persist_and_push() -> bool:
        if not pushed:
            pushed.append(True)
            provider.push_position(*second)
            # The nested fix must not have run yet.
            assert session.player.position == LatLng(*first)
        return original_persist()

    session.persist = persist_and_push
    provider.push_position(*first)

    assert session.player.path[-2:] == [LatLng(*first), LatLng(*second)]
    assert session.player_cell() is session.grid.cell(5, 0)


def test_location_error_fatal_codes() -> None:
    assert LocationError(PERMISSION_DENIED).fatal
    assert not LocationError(TIMEOUT).fatal
    assert not LocationError(POSITION_UNAVAILABLE).fatal


def test_close_stops_live_location() -> None:
    provider = ManualLocationProvider()
    session = _session(provider)
    session.toggle_live_location()

    session.close()
    session.close()

    assert provider.active_watch_count() == 0


def test_non_finite_fix_is_logged_and_ignored(caplog) -> None:
    provider = ManualLocationProvider()
    store = MemoryStore()
    session = GameSession.start(store, location_provider=provider)
    session.toggle_live_location()

    with caplog.at_level(logging.WARNING, logger="geocache.sim.core"):
        provider.push_position(float("inf"), LOCATION[1])
    provider.push_position(LOCATION[0] + 1.5 * TILE_DEGREES, LOCATION[1] + 0.5 * TILE_DEGREES)

    assert "invalid position" in caplog.text
    assert session.live_location.is_active
    assert session.player.path == [LatLng(*LOCATION), session.player.position]
    assert session.player_cell() is session.grid.cell(1, 0)
    assert session.get_action_trace()[-1]["saved"] is True


def test_failed_command_drops_fixes_queued_behind_it() -> None:
    provider = ManualLocationProvider()
    session = _session(provider)
    session.toggle_live_location()

    def deposit_then_fail(command, cell) -> None:
        provider.push_position(LOCATION[0] + 9.5 * TILE_DEGREES, LOCATION[1])
        raise RuntimeError("deposit failed")

    session._execute_deposit = deposit_then_fail
    with pytest.raises(RuntimeError, match="deposit failed"):
        session.deposit(session.player_cell())
    session.move_player(1, 0)

    assert len(session.player.path) == 2
    assert session.player_cell() is session.grid.cell(1, 0)
