"""Mutable runtime state for one playthrough of a story."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from storyloom.core.rng import RNG
from storyloom.core.types import StoryStatus
from storyloom.domain.address import Address
from storyloom.domain.variable import Variable


@dataclass(slots=True)
class PresentedChoice:
    """A choice on offer, kept so it survives a save while waiting for a selection."""

    branch_id: int
    text: str
    tags: List[str] = field(default_factory=list)


@dataclass
class StoryState:
    """Everything that changes while a story is followed.

    The parsed tree never changes, so this plus the script text is enough to
    rebuild a session. ``frames`` holds ``[container_id, index]`` pairs from
    the stitch body down to the innermost open choice branch; it is empty
    when the current stitch has not been entered yet.
    """

    seed: int
    rng: RNG
    location: Address
    variables: Dict[str, Variable] = field(default_factory=dict)
    status: StoryStatus = "awaiting_resume"
    frames: List[List[int]] = field(default_factory=list)
    visit_counts: Dict[Address, int] = field(default_factory=dict)
    choice_counts: Dict[int, int] = field(default_factory=dict)
    sequence_cursors: Dict[int, int] = field(default_factory=dict)
    shuffle_orders: Dict[int, List[int]] = field(default_factory=dict)
    presented: List[PresentedChoice] = field(default_factory=list)

    def visits(self, address: Address) -> int:
        return self.visit_counts.get(address, 0)

    def times_chosen(self, branch_id: int) -> int:
        return self.choice_counts.get(branch_id, 0)
