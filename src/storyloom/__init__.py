"""Interpreter for branching stories written in an ink-like markup."""

from storyloom.services import (
    Choice,
    Line,
    Prompt,
    ReadError,
    Story,
    StoryError,
    read_story_from_string,
)

__all__ = [
    "Choice",
    "Line",
    "Prompt",
    "ReadError",
    "Story",
    "StoryError",
    "read_story_from_string",
]
