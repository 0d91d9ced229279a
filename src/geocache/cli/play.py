from __future__ import annotations

import argparse
import dataclasses
import json
from pathlib import Path
from typing import Sequence

from geocache.cli.pygame_viewer import run_pygame_viewer
from geocache.content.io import clear_session
from geocache.content.storage import JsonFileStore
from geocache.sim.config import GameConfig

DEFAULT_SAVE_PATH = "saves/canonical_session_store.json"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geocache-play", description="Canonical geocache launcher.")
    parser.add_argument("--save-path", default=DEFAULT_SAVE_PATH, help="JSON store file holding the session.")
    parser.add_argument("--config", default=None, help="JSON file with GameConfig fields to override.")
    parser.add_argument("--fresh", action="store_true", help="Discard the stored session before starting.")
    parser.add_argument(
        "--neighborhood-size",
        type=int,
        default=None,
        help="Cells searched for caches in each direction around the player.",
    )
    parser.add_argument("--headless", action="store_true", help="Run startup path in headless mode.")
    return parser


def load_config(path: str | None) -> GameConfig:
    if path is None:
        return GameConfig()
    return GameConfig.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        if args.neighborhood_size is not None:
            config = dataclasses.replace(config, neighborhood_size=args.neighborhood_size)
    except (OSError, TypeError, ValueError) as exc:
        parser.error(f"invalid config: {exc}")
    if args.fresh:
        clear_session(JsonFileStore(args.save_path), key=config.storage_key)
    return run_pygame_viewer(headless=args.headless, save_path=args.save_path, config=config)


if __name__ == "__main__":
    raise SystemExit(main())
