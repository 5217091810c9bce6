"""Service-layer exceptions."""
from __future__ import annotations

from typing import List, Sequence

from storyloom.services.issues import Issue, format_issue


class ReadError(Exception):
    """Raised when a script cannot be turned into a story; carries every issue found."""

    def __init__(self, issues: Sequence[Issue]) -> None:
        self.issues: List[Issue] = list(issues)
        summary = "\n".join(format_issue(issue) for issue in self.issues)
        super().__init__(f"story has {len(self.issues)} error(s):\n{summary}")


class StoryError(Exception):
    """Base class for errors raised while a story is being followed."""


class OutOfChoicesError(StoryError):
    """Raised when a choice set has nothing left to present and no fallback."""

    def __init__(self, location: str, line_number: int) -> None:
        self.location = location
        self.line_number = line_number
        super().__init__(
            f"ran out of choices at {location} (line {line_number}): every choice is "
            "spent or filtered and there is no fallback"
        )


class StoryFinishedError(StoryError):
    """Raised when resuming a story that has already reached its end."""


class ChoicePendingError(StoryError):
    """Raised when resuming while a choice is still waiting to be made."""


class MadeChoiceWithoutChoiceError(StoryError):
    """Raised when make_choice is called without presented choices."""


class InvalidChoiceError(StoryError):
    """Raised when a choice index is outside the presented range."""

    def __init__(self, selection: int, presented_count: int) -> None:
        self.selection = selection
        self.presented_count = presented_count
        super().__init__(
            f"choice index {selection} is out of range: {presented_count} choice(s) presented"
        )


class InvalidAddressError(StoryError):
    """Raised when moving to a knot or stitch that does not exist."""


class InvalidVariableError(StoryError):
    """Raised when a variable name is not declared in the story."""


class TypeMismatchError(StoryError):
    """Raised when a value does not match the declared variable type."""

    def __init__(self, name: str, expected: str, received: str) -> None:
        self.name = name
        self.expected = expected
        self.received = received
        super().__init__(f"variable '{name}' holds {expected} values, got {received}")


class ConstantViolationError(StoryError):
    """Raised when assigning to a CONST declaration."""


class EvaluationError(StoryError):
    """Raised when an expression cannot be evaluated at runtime."""


class SaveLoadError(Exception):
    """Raised when save or load operations fail."""
