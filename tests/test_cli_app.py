from pathlib import Path
from typing import List

import pytest

from storyloom.data import get_stories_path
from storyloom.presentation.cli import app, config

LIGHTHOUSE = get_stories_path() / "lighthouse.ink"


@pytest.fixture(autouse=True)
def _isolated_user_dir(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_user_data_dir", lambda: tmp_path)


def _set_inputs(monkeypatch, values: List[str]) -> None:
    iterator = iter(values)
    monkeypatch.setattr("builtins.input", lambda *_args, **_kwargs: next(iterator))


def test_play_bundled_story_to_the_end(monkeypatch, capsys) -> None:
    _set_inputs(monkeypatch, ["1", "1", "1"])

    assert app.main([str(LIGHTHOUSE), "--seed", "5"]) == 0

    out = capsys.readouterr().out
    assert "=== The Lighthouse Keeper ===" in out
    assert "1. Knock on the door" in out
    assert '"Who goes there?" she asks.' in out
    assert "The beam sweeps the water." in out
    assert "=== The End ===" in out
    assert out.rstrip().endswith("Goodbye!")


def test_save_and_load_from_a_slot(monkeypatch, capsys, tmp_path: Path) -> None:
    _set_inputs(monkeypatch, ["load 1", "save 1", "load 1", "2", "quit"])

    assert app.main([str(LIGHTHOUSE), "--seed", "5"]) == 0

    out = capsys.readouterr().out
    assert "Slot 1 is empty." in out
    assert "Saved to slot 1." in out
    assert "Loaded slot 1." in out
    assert "You count 2 measures of oil." in out
    assert (tmp_path / "saves" / "lighthouse" / "slot_1.json").exists()


def test_invalid_commands_are_reprompted(monkeypatch, capsys) -> None:
    _set_inputs(monkeypatch, ["hello", "9", "save 7", "q"])

    assert app.main([str(LIGHTHOUSE), "--seed", "5"]) == 0

    out = capsys.readouterr().out
    assert "Enter a choice number" in out
    assert "Please enter a value between 1 and 3." in out
    assert "Slots range from 1 to 3." in out


def test_unreadable_story_reports_issues(capsys, tmp_path: Path) -> None:
    script = tmp_path / "broken.ink"
    script.write_text("-> nowhere\n{missing}", encoding="utf-8")

    assert app.main([str(script)]) == 1

    out = capsys.readouterr().out
    assert "could not be read" in out
    assert "UNKNOWN_ADDRESS" in out
    assert "UNKNOWN_NAME" in out


def test_missing_script_file(capsys, tmp_path: Path) -> None:
    assert app.main([str(tmp_path / "absent.ink")]) == 1
    assert "not found" in capsys.readouterr().out


def test_runtime_errors_end_the_session(monkeypatch, capsys, tmp_path: Path) -> None:
    script = tmp_path / "loop.ink"
    script.write_text("=== loop ===\n* [Again] Once more.\n  -> loop", encoding="utf-8")
    _set_inputs(monkeypatch, ["1"])

    assert app.main([str(script)]) == 0

    assert "The story cannot continue" in capsys.readouterr().out


def test_parser_defaults() -> None:
    args = app.build_parser().parse_args([])

    assert args.script is None
    assert args.seed is None
    assert args.log_level == "WARNING"
