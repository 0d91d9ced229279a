from __future__ import annotations

import argparse
import importlib.metadata
import math
import os
import platform
import sys
from typing import Any

from geocache.content.storage import JsonFileStore
from geocache.sim.config import DEFAULT_CONFIG, GameConfig
from geocache.sim.core import GameSession
from geocache.sim.grid import Cell, LatLng
from geocache.sim.hash import session_hash

pygame: Any = None

CELL_PIXELS = 40
WINDOW_SIZE = (900, 780)
HUD_HEIGHT = 100
DEFAULT_SAVE_PATH = "saves/session_store.json"

BACKGROUND_COLOR = (24, 28, 34)
GRID_LINE_COLOR = (44, 50, 60)
CACHE_FILL_COLOR = (58, 110, 196)
CACHE_EMPTY_COLOR = (90, 96, 110)
SELECTED_OUTLINE_COLOR = (245, 200, 80)
TRAIL_COLOR = (220, 90, 90)
PLAYER_COLOR = (250, 250, 250)
HUD_TEXT_COLOR = (220, 224, 232)


def _viewport_center() -> tuple[float, float]:
    return (WINDOW_SIZE[0] / 2.0, HUD_HEIGHT + (WINDOW_SIZE[1] - HUD_HEIGHT) / 2.0)


def cell_to_screen_rect(session: GameSession, cell: Cell, center: tuple[float, float]) -> tuple[int, int, int, int]:
    """Pixel rect of ``cell``; north is up and the player's cell sits at ``center``."""
    player_cell = session.player_cell()
    left = center[0] + (cell.j - player_cell.j - 0.5) * CELL_PIXELS
    top = center[1] - (cell.i - player_cell.i + 0.5) * CELL_PIXELS
    return (int(round(left)), int(round(top)), CELL_PIXELS, CELL_PIXELS)


def screen_to_cell(session: GameSession, pixel: tuple[int, int], center: tuple[float, float]) -> Cell:
    player_cell = session.player_cell()
    dj = math.floor((pixel[0] - center[0]) / CELL_PIXELS + 0.5)
    di = math.floor((center[1] - pixel[1]) / CELL_PIXELS + 0.5)
    return session.grid.cell(player_cell.i + di, player_cell.j + dj)


def position_to_pixel(session: GameSession, position: LatLng, center: tuple[float, float]) -> tuple[float, float]:
    """Continuous position relative to the centre of the player's cell."""
    anchor = session.grid.cell_center(session.player_cell())
    scale = CELL_PIXELS / session.grid.tile_degrees
    return (
        center[0] + (position.lng - anchor.lng) * scale,
        center[1] - (position.lat - anchor.lat) * scale,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geocache-viewer", description="Pygame geocache viewer.")
    parser.add_argument("--headless", action="store_true", help="Initialize once with the dummy SDL driver and exit.")
    parser.add_argument(
        "--save-path",
        default=DEFAULT_SAVE_PATH,
        help="JSON store file the session is loaded from and flushed to after every action.",
    )
    parser.add_argument(
        "--neighborhood-size",
        type=int,
        default=DEFAULT_CONFIG.neighborhood_size,
        help="Cells searched for caches in each direction around the player.",
    )
    return parser


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[geocache.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER"):
        value = os.environ.get(name, "<unset>")
        print(f"[geocache.viewer] env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _load_viewer_session(save_path: str, config: GameConfig) -> GameSession:
    session = GameSession.start(JsonFileStore(save_path), config=config)
    print(
        "[geocache.viewer] loaded "
        f"path={save_path} coins={session.player.coin_count()} "
        f"directory={len(session.directory)} "
        f"session_hash={session_hash(session.state)}"
    )
    return session


def _draw_world(screen: Any, session: GameSession, font: Any, selected: Cell | None) -> None:
    center = _viewport_center()
    radius = session.config.neighborhood_size
    player_cell = session.player_cell()
    for i in range(player_cell.i - radius, player_cell.i + radius):
        for j in range(player_cell.j - radius, player_cell.j + radius):
            cell = session.grid.cell(i, j)
            rect = pygame.Rect(*cell_to_screen_rect(session, cell, center))
            cache = session.cache_at(cell)
            if cache is not None:
                color = CACHE_FILL_COLOR if cache.size() else CACHE_EMPTY_COLOR
                pygame.draw.rect(screen, color, rect)
                label = font.render(str(cache.size()), True, HUD_TEXT_COLOR)
                screen.blit(label, label.get_rect(center=rect.center))
            pygame.draw.rect(screen, GRID_LINE_COLOR, rect, 1)
            if selected is not None and cell is selected:
                pygame.draw.rect(screen, SELECTED_OUTLINE_COLOR, rect, 2)

    trail = [position_to_pixel(session, point, center) for point in session.player.path]
    if len(trail) >= 2:
        pygame.draw.lines(screen, TRAIL_COLOR, False, trail, 2)
    player_x, player_y = position_to_pixel(session, session.player.position, center)
    pygame.draw.circle(screen, PLAYER_COLOR, (int(player_x), int(player_y)), CELL_PIXELS // 4)


def _draw_hud(screen: Any, session: GameSession, font: Any, selected: Cell | None) -> None:
    target = selected if selected is not None else session.player_cell()
    cache = session.cache_at(target)
    lines = [
        session.status_message,
        f"live location: {'on' if session.live_location.is_active else 'off'}   "
        f"coins: {session.player.coin_count()}   visited caches: {len(session.directory)}",
        "arrows move  C collect  D deposit  R reset  L live location  click selects a cache",
    ]
    if cache is not None:
        top = cache.peek()
        top_text = top.label() if top is not None else "-"
        lines[1] += f"   cache {target.i},{target.j}: {cache.size()} (top {top_text})"
    for index, text in enumerate(lines):
        screen.blit(font.render(text, True, HUD_TEXT_COLOR), (12, 10 + index * 28))


def _action_cell(session: GameSession, selected: Cell | None) -> Cell:
    if selected is not None and session.cache_at(selected) is not None:
        return selected
    return session.player_cell()


def run_pygame_viewer(
    *,
    headless: bool = False,
    save_path: str = DEFAULT_SAVE_PATH,
    config: GameConfig = DEFAULT_CONFIG,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[geocache.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[geocache.viewer] failed during pygame.init(): "
            f"{exc}. Hint: set SDL_VIDEODRIVER=dummy for headless mode.",
            file=sys.stderr,
        )
        return 1

    try:
        session = _load_viewer_session(save_path, config)
    except Exception as exc:
        print(f"[geocache.viewer] failed to initialize session: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1

    try:
        pygame_module.display.set_caption("Geocache")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            "[geocache.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: use --headless or GEOCACHE_HEADLESS=1 without a display.",
            file=sys.stderr,
        )
        session.close()
        pygame_module.quit()
        return 1

    if headless:
        session.refresh_neighborhood()
        session.close()
        pygame_module.quit()
        return 0

    key_directions = {
        pygame_module.K_UP: (1, 0),
        pygame_module.K_DOWN: (-1, 0),
        pygame_module.K_RIGHT: (0, 1),
        pygame_module.K_LEFT: (0, -1),
    }
    clock = pygame_module.time.Clock()
    font = pygame_module.font.SysFont("consolas", 18)
    selected: Cell | None = None
    running = True

    while running:
        clock.tick(30)
        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN:
                if event.key == pygame_module.K_ESCAPE:
                    running = False
                elif event.key in key_directions:
                    session.move_player(*key_directions[event.key])
                    selected = None
                elif event.key == pygame_module.K_c:
                    session.collect(_action_cell(session, selected))
                elif event.key == pygame_module.K_d:
                    session.deposit(_action_cell(session, selected))
                elif event.key == pygame_module.K_r:
                    session.reset_session()
                    selected = None
                elif event.key == pygame_module.K_l:
                    session.toggle_live_location()
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button == 1 and event.pos[1] > HUD_HEIGHT:
                clicked = screen_to_cell(session, event.pos, _viewport_center())
                selected = clicked if session.cache_at(clicked) is not None else None

        screen.fill(BACKGROUND_COLOR)
        _draw_world(screen, session, font, selected)
        _draw_hud(screen, session, font, selected)
        pygame_module.display.flip()

    session.close()
    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    headless = args.headless or _env_flag_enabled("GEOCACHE_HEADLESS")
    config = GameConfig(neighborhood_size=args.neighborhood_size)
    raise SystemExit(run_pygame_viewer(headless=headless, save_path=args.save_path, config=config))


if __name__ == "__main__":
    main()
