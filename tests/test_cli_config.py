import json
from pathlib import Path

from storyloom.presentation.cli import config


def test_missing_config_returns_defaults(tmp_path: Path) -> None:
    assert config.load_config(tmp_path / "config.json") == config.default_config()


def test_config_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    config.save_config({"text_display_mode": "step", "show_tags": True}, path)

    assert config.load_config(path) == {"text_display_mode": "step", "show_tags": True}


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"text_display_mode": "fast", "show_tags": "yes"}), encoding="utf-8")

    assert config.load_config(path) == config.default_config()


def test_unreadable_config_is_ignored(tmp_path: Path, caplog) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    assert config.load_config(path) == config.default_config()
    assert "Ignoring unreadable config" in caplog.text


def test_save_dir_is_under_user_data_dir(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_user_data_dir", lambda: tmp_path)

    assert config.get_save_dir() == tmp_path / "saves"
    assert config.get_default_config_path() == tmp_path / "config.json"
