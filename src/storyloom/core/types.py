"""Shared type aliases for the core and domain layers."""
from typing import Literal

StoryStatus = Literal["awaiting_resume", "presenting", "done"]
PromptKind = Literal["choice", "done"]
VariableKind = Literal["int", "float", "bool", "string", "divert"]
SequenceMode = Literal["sequence", "cycle", "once", "shuffle"]
LineKind = Literal[
    "text",
    "choice",
    "gather",
    "knot",
    "stitch",
    "variable",
    "tag",
    "divert",
    "assignment",
]

__all__ = ["LineKind", "PromptKind", "SequenceMode", "StoryStatus", "VariableKind"]
