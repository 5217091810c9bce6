"""Inline content of a single script line."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Union

from storyloom.core.types import SequenceMode
from storyloom.domain.address import Address
from storyloom.domain.defs.expression_def import Expression


@dataclass(slots=True)
class TextFragment:
    text: str


@dataclass(slots=True)
class InterpolationFragment:
    expression: Expression


@dataclass(slots=True)
class ConditionalFragment:
    condition: Expression
    when_true: List["Fragment"] = field(default_factory=list)
    when_false: List["Fragment"] = field(default_factory=list)


@dataclass(slots=True)
class AlternativeFragment:
    """Sequence, cycle, once-only or shuffle alternatives.

    ``sequence_id`` is assigned in source order so cursors survive a save.
    """

    mode: SequenceMode
    items: List[List["Fragment"]]
    sequence_id: int


@dataclass(slots=True)
class DivertFragment:
    """Divert to a knot/stitch, to END/DONE, or through a divert variable."""

    target: str
    line_number: int
    address: Address | None = None
    is_end: bool = False
    variable: str | None = None


Fragment = Union[
    TextFragment,
    InterpolationFragment,
    ConditionalFragment,
    AlternativeFragment,
    DivertFragment,
]


@dataclass(slots=True)
class ContentLine:
    """One line of output content before it is rendered."""

    fragments: List[Fragment]
    line_number: int
    glue_begin: bool = False
    glue_end: bool = False
    tags: List[str] = field(default_factory=list)

    def is_blank(self) -> bool:
        """True when the line holds nothing but whitespace text."""
        return all(
            isinstance(fragment, TextFragment) and not fragment.text.strip()
            for fragment in self.fragments
        )


def iter_fragments(fragments: List[Fragment]) -> Iterator[Fragment]:
    """Yield fragments depth-first, descending into conditionals and alternatives."""
    stack: List[Fragment] = list(reversed(fragments))
    while stack:
        fragment = stack.pop()
        yield fragment
        if isinstance(fragment, ConditionalFragment):
            stack.extend(reversed(fragment.when_false))
            stack.extend(reversed(fragment.when_true))
        elif isinstance(fragment, AlternativeFragment):
            for item in reversed(fragment.items):
                stack.extend(reversed(item))
