import json
from pathlib import Path

import pytest

from geocache.cli.play import DEFAULT_SAVE_PATH, main
from geocache.content.storage import JsonFileStore
from geocache.sim.config import DEFAULT_CONFIG, SESSION_STORAGE_KEY, GameConfig


def test_play_launcher_passes_save_path_and_headless(tmp_path: Path, monkeypatch) -> None:
    save_path = tmp_path / "store.json"
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)
        return 0

    monkeypatch.setattr("geocache.cli.play.run_pygame_viewer", fake_run)

    result = main(["--headless", "--save-path", str(save_path), "--neighborhood-size", "4"])

    assert result == 0
    assert captured["headless"] is True
    assert captured["save_path"] == str(save_path)
    assert captured["config"].neighborhood_size == 4


def test_play_launcher_defaults_to_canonical_save_path(monkeypatch) -> None:
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)
        return 0

    monkeypatch.setattr("geocache.cli.play.run_pygame_viewer", fake_run)

    result = main([])

    assert result == 0
    assert captured["save_path"] == DEFAULT_SAVE_PATH
    assert captured["headless"] is False
    assert captured["config"] == DEFAULT_CONFIG


def test_play_launcher_fresh_discards_stored_session(tmp_path: Path, monkeypatch) -> None:
    save_path = tmp_path / "store.json"
    store = JsonFileStore(save_path)
    store.set_item(SESSION_STORAGE_KEY, "{}")
    store.set_item("unrelated", "kept")
    monkeypatch.setattr("geocache.cli.play.run_pygame_viewer", lambda **_: 0)

    main(["--fresh", "--save-path", str(save_path)])

    assert store.get_item(SESSION_STORAGE_KEY) is None
    assert store.get_item("unrelated") == "kept"


def test_play_launcher_reads_config_file(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"tile_degrees": 2e-4, "neighborhood_size": 5}), encoding="utf-8")
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)
        return 0

    monkeypatch.setattr("geocache.cli.play.run_pygame_viewer", fake_run)

    main(["--config", str(config_path), "--neighborhood-size", "2"])

    assert captured["config"].tile_degrees == 2e-4
    assert captured["config"].neighborhood_size == 2
    assert GameConfig.from_dict(captured["config"].to_dict()) == captured["config"]


def test_play_launcher_rejects_invalid_config(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"spawn_probability": 3}), encoding="utf-8")
    monkeypatch.setattr("geocache.cli.play.run_pygame_viewer", lambda **_: 0)

    with pytest.raises(SystemExit):
        main(["--config", str(config_path)])
