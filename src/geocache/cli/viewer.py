from __future__ import annotations

import argparse
from typing import Callable, Sequence

from geocache.content.storage import JsonFileStore
from geocache.sim.core import GameSession
from geocache.sim.location import ManualLocationProvider

DEFAULT_SAVE_PATH = "saves/session_store.json"
DIRECTIONS: dict[str, tuple[int, int]] = {
    "n": (1, 0),
    "s": (-1, 0),
    "e": (0, 1),
    "w": (0, -1),
}
HELP_TEXT = "Commands: n | s | e | w | collect | deposit | reset | live | gps <lat> <lng> | show | quit"


class AsciiViewer:
    """Read-only projection of the session for terminal display."""

    def render(self, session: GameSession) -> str:
        player = session.player
        player_cell = session.player_cell()
        radius = session.config.neighborhood_size
        lines = [
            f"position=({player.position.lat:.6f},{player.position.lng:.6f}) "
            f"cell=({player_cell.i},{player_cell.j}) coins={player.coin_count()} "
            f"live={'on' if session.live_location.is_active else 'off'}"
        ]

        for i in range(player_cell.i + radius - 1, player_cell.i - radius - 1, -1):
            row: list[str] = []
            for j in range(player_cell.j - radius, player_cell.j + radius):
                cell = session.grid.cell(i, j)
                if cell is player_cell:
                    row.append("@")
                elif cell in session.caches:
                    row.append("C")
                else:
                    row.append(".")
            lines.append(" ".join(row))

        for view in session.visible_caches():
            marker = " <- here" if view.cell is player_cell else ""
            lines.append(f"cache[{view.cell.i},{view.cell.j}] coins={view.size}{marker}")
        lines.append(session.status_message)
        return "\n".join(lines)


def handle_command(session: GameSession, raw: str, provider: ManualLocationProvider | None = None) -> str:
    parts = raw.strip().split()
    if not parts:
        return HELP_TEXT
    verb = parts[0].lower()
    if verb in DIRECTIONS and len(parts) == 1:
        di, dj = DIRECTIONS[verb]
        session.move_player(di, dj)
        return session.status_message
    if verb == "collect":
        session.collect(session.player_cell())
        return session.status_message
    if verb == "deposit":
        session.deposit(session.player_cell())
        return session.status_message
    if verb == "reset":
        session.reset_session()
        return session.status_message
    if verb == "live":
        session.toggle_live_location()
        return session.status_message
    if verb == "gps" and len(parts) == 3:
        if provider is None:
            return "no manual location provider attached"
        provider.push_position(float(parts[1]), float(parts[2]))
        return session.status_message
    return f"unknown command. {HELP_TEXT}"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geocache-ascii", description="Terminal geocache session.")
    parser.add_argument("--save-path", default=DEFAULT_SAVE_PATH, help="JSON store file holding the session.")
    return parser


def run_demo(save_path: str = DEFAULT_SAVE_PATH, *, read_line: Callable[[str], str] | None = None) -> None:
    reader = read_line if read_line is not None else input
    provider = ManualLocationProvider()
    session = GameSession.start(JsonFileStore(save_path), location_provider=provider)
    view = AsciiViewer()

    print(f"Geocache demo. {HELP_TEXT}")
    print(view.render(session))

    while True:
        try:
            raw = reader("> ").strip()
        except EOFError:
            break
        if raw in {"quit", "exit"}:
            break
        if raw == "show":
            print(view.render(session))
            continue
        print(handle_command(session, raw, provider))

    session.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    run_demo(args.save_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
