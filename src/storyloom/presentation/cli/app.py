"""Console-driven player loop for storyloom scripts."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Sequence, Tuple

from storyloom.data import DataLoadError, list_scripts, load_script
from storyloom.presentation.cli import render
from storyloom.presentation.cli.config import load_config
from storyloom.presentation.cli.save_slots import SaveSlotStore
from storyloom.services import (
    Line,
    Prompt,
    ReadError,
    SaveLoadError,
    SaveService,
    Story,
    StoryError,
    format_issue,
    parse_story,
    start_story,
)

logger = logging.getLogger(__name__)

ActionKind = Literal["choose", "save", "load", "quit"]
PlayerAction = Tuple[ActionKind, int]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyloom", description="Play an interactive story script.")
    parser.add_argument("script", nargs="?", help="path to a story script (defaults to a bundled story)")
    parser.add_argument("--seed", type=int, default=None, help="seed for shuffled text")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Start the interactive CLI session and return a process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    config = load_config()

    script_path = Path(args.script) if args.script else _prompt_script()
    if script_path is None:
        print("No story scripts found.")
        return 1
    try:
        tree, log = parse_story(load_script(script_path))
    except DataLoadError as exc:
        print(exc)
        return 1
    except ReadError as exc:
        print(f"The story in {script_path} could not be read:")
        for issue in exc.issues:
            print(f"  {format_issue(issue)}")
        return 1
    for entry in log.entries():
        logger.info(format_issue(entry))

    story = start_story(tree, log, seed=args.seed)
    render.render_heading(_story_title(story, script_path))
    _run_story_loop(
        story,
        SaveService(tree, log=log),
        SaveSlotStore(story_id=script_path.stem),
        config,
    )
    print("Goodbye!")
    return 0


def _prompt_script() -> Path | None:
    scripts = list_scripts()
    if not scripts:
        return None
    if len(scripts) == 1:
        return scripts[0]
    print("Available stories:")
    for idx, path in enumerate(scripts, start=1):
        print(f"{idx}. {path.stem}")
    while True:
        raw = input("Select a story: ").strip()
        try:
            index = int(raw) - 1
        except ValueError:
            print("Please enter a number.")
            continue
        if 0 <= index < len(scripts):
            return scripts[index]
        print(f"Please enter a value between 1 and {len(scripts)}.")


def _story_title(story: Story, script_path: Path) -> str:
    for tag in story.get_story_tags():
        key, _, value = tag.partition(":")
        if key.strip().lower() == "title" and value.strip():
            return value.strip()
    return script_path.stem.replace("_", " ").title()


def _run_story_loop(
    story: Story, save_service: SaveService, slots: SaveSlotStore, config: Dict[str, Any]
) -> None:
    show_tags = bool(config.get("show_tags"))
    step = config.get("text_display_mode") == "step"
    while True:
        prompt = story.current_prompt()
        if prompt is None:
            buffer: List[Line] = []
            try:
                prompt = story.resume(buffer)
            except StoryError as exc:
                print(f"\nThe story cannot continue: {exc}")
                return
            render.render_lines(buffer, show_tags=show_tags, step=step)
        if render.debug_enabled():
            render.render_location(*story.get_current_location())
        if prompt.is_done:
            render.render_heading("The End")
            return
        choices = prompt.get_choices() or []
        render.render_choices(choices, show_tags=show_tags)
        next_story = _handle_actions(story, prompt, save_service, slots)
        if next_story is None:
            return
        story = next_story


def _handle_actions(
    story: Story, prompt: Prompt, save_service: SaveService, slots: SaveSlotStore
) -> Story | None:
    """Read commands until a choice is made or a save is loaded; None means quit."""
    choice_count = len(prompt.choices)
    while True:
        kind, value = _prompt_action(choice_count, slots.slot_count)
        if kind == "choose":
            story.make_choice(value)
            return story
        if kind == "quit":
            return None
        if kind == "save":
            slots.write_slot(value, save_service.serialize(story))
            print(f"Saved to slot {value}.")
            continue
        loaded = _load_slot(save_service, slots, value)
        if loaded is not None:
            print(f"Loaded slot {value}.")
            return loaded


def _load_slot(save_service: SaveService, slots: SaveSlotStore, slot: int) -> Story | None:
    if not slots.slot_exists(slot):
        print(f"Slot {slot} is empty.")
        return None
    try:
        return save_service.deserialize(slots.read_slot(slot))
    except (OSError, ValueError, SaveLoadError) as exc:
        print(f"Could not load slot {slot}: {exc}")
        return None


def _prompt_action(choice_count: int, slot_count: int) -> PlayerAction:
    while True:
        raw = input("> ").strip().lower()
        command, _, argument = raw.partition(" ")
        if command in ("q", "quit"):
            return "quit", 0
        if command in ("save", "load"):
            try:
                slot = int(argument)
            except ValueError:
                print(f"Usage: {command} <slot 1-{slot_count}>")
                continue
            if 1 <= slot <= slot_count:
                return ("save" if command == "save" else "load"), slot
            print(f"Slots range from 1 to {slot_count}.")
            continue
        try:
            index = int(raw) - 1
        except ValueError:
            print("Enter a choice number, 'save N', 'load N' or 'quit'.")
            continue
        if 0 <= index < choice_count:
            return "choose", index
        print(f"Please enter a value between 1 and {choice_count}.")
