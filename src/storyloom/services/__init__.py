"""Service layer exports."""

from .errors import (
    ChoicePendingError,
    ConstantViolationError,
    EvaluationError,
    InvalidAddressError,
    InvalidChoiceError,
    InvalidVariableError,
    MadeChoiceWithoutChoiceError,
    OutOfChoicesError,
    ReadError,
    SaveLoadError,
    StoryError,
    StoryFinishedError,
    TypeMismatchError,
)
from .follow_engine import Choice, Prompt, Story
from .issues import Issue, IssueLog, format_issue
from .line_buffer import Line
from .save_service import SaveService
from .story_reader import parse_story, read_story_from_string, start_story

__all__ = [
    "ChoicePendingError",
    "ConstantViolationError",
    "EvaluationError",
    "InvalidAddressError",
    "InvalidChoiceError",
    "InvalidVariableError",
    "MadeChoiceWithoutChoiceError",
    "OutOfChoicesError",
    "ReadError",
    "SaveLoadError",
    "StoryError",
    "StoryFinishedError",
    "TypeMismatchError",
    "Choice",
    "Prompt",
    "Story",
    "Issue",
    "IssueLog",
    "format_issue",
    "Line",
    "SaveService",
    "parse_story",
    "read_story_from_string",
    "start_story",
]
