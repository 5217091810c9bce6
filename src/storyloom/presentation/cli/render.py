"""Shared CLI rendering helpers."""
from __future__ import annotations

import os
import textwrap
from typing import Iterable, List, Sequence

from storyloom.services import Choice, Line

_WRAP_WIDTH = 78


def debug_enabled() -> bool:
    """Return True only when STORYLOOM_DEBUG is explicitly set to '1'."""
    return os.getenv("STORYLOOM_DEBUG") == "1"


def format_paragraphs(lines: Sequence[Line], *, show_tags: bool = False) -> List[str]:
    """Join glued lines into paragraphs and wrap them for the terminal."""
    paragraphs: List[str] = []
    current: List[str] = []
    tags: List[str] = []
    for line in lines:
        current.append(line.text)
        tags.extend(line.tags)
        if line.text.endswith("\n"):
            paragraphs.append(_finish_paragraph(current, tags, show_tags))
            current, tags = [], []
    if current:
        paragraphs.append(_finish_paragraph(current, tags, show_tags))
    return paragraphs


def _finish_paragraph(parts: Iterable[str], tags: List[str], show_tags: bool) -> str:
    text = textwrap.fill("".join(parts).strip(), width=_WRAP_WIDTH)
    if show_tags and tags:
        text += "\n" + " ".join(f"#{tag}" for tag in tags)
    return text


def format_choice(index: int, choice: Choice, *, show_tags: bool = False) -> str:
    label = f"{index}. {choice.text}"
    if show_tags and choice.tags:
        label += "  " + " ".join(f"#{tag}" for tag in choice.tags)
    return label


def render_heading(title: str) -> None:
    """Print a consistent section heading."""
    print(f"\n=== {title} ===")


def render_lines(lines: Sequence[Line], *, show_tags: bool = False, step: bool = False) -> None:
    """Print story text; in step mode wait for Enter between paragraphs."""
    paragraphs = format_paragraphs(lines, show_tags=show_tags)
    for idx, paragraph in enumerate(paragraphs):
        print(paragraph)
        if step and idx < len(paragraphs) - 1:
            input()


def render_choices(choices: Sequence[Choice], *, show_tags: bool = False) -> None:
    """Display numbered story choices."""
    if not choices:
        return
    print()
    for idx, choice in enumerate(choices, start=1):
        print(format_choice(idx, choice, show_tags=show_tags))


def render_location(knot: str, stitch: str | None) -> None:
    location = knot if stitch is None else f"{knot}.{stitch}"
    print(f"[{location}]")
