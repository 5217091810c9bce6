"""Turns rendered lines into caller-ready output lines."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(slots=True)
class Line:
    """A line of story text handed to the caller."""

    text: str
    tags: List[str] = field(default_factory=list)


@dataclass(slots=True)
class RenderedLine:
    text: str
    glue_begin: bool = False
    glue_end: bool = False
    tags: List[str] = field(default_factory=list)


def process_buffer(rendered: List[RenderedLine]) -> List[Line]:
    """Drop empty lines and add line endings.

    A line is glued to the next when it ends with glue or the next one begins
    with it. Glued lines keep no newline; if either side of the joint has
    whitespace it collapses to a single space.
    """
    kept = [line for line in rendered if line.text.strip()]
    processed: List[Line] = []
    for index, line in enumerate(kept):
        next_line = kept[index + 1] if index + 1 < len(kept) else None
        processed.append(Line(text=_with_line_ending(line, next_line), tags=list(line.tags)))
    return processed


def _with_line_ending(line: RenderedLine, next_line: RenderedLine | None) -> str:
    glue = next_line is not None and (line.glue_end or next_line.glue_begin)
    whitespace = (
        glue
        and next_line is not None
        and (line.text.endswith(" ") or next_line.text.startswith(" "))
    )
    if glue and not whitespace:
        return line.text
    text = line.text.strip()
    if whitespace:
        text += " "
    if not glue:
        text += "\n"
    return text
