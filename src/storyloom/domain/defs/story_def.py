"""Story definition structures used by the runtime."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from storyloom.domain.address import ROOT_STITCH_NAME, Address
from storyloom.domain.defs.node_def import NodeArena
from storyloom.domain.variable import Variable


@dataclass(slots=True)
class VariableDecl:
    """A ``VAR`` or ``CONST`` declaration from the preamble."""

    name: str
    initial: Variable
    line_number: int
    is_constant: bool = False


@dataclass(slots=True)
class StitchDef:
    knot: str
    name: str
    container_id: int
    line_number: int

    @property
    def address(self) -> Address:
        return Address(self.knot, self.name)


@dataclass(slots=True)
class KnotDef:
    name: str
    line_number: int
    stitches: Dict[str, StitchDef] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)

    @property
    def default_stitch(self) -> str:
        """The root stitch when the knot has leading content, else the first named stitch."""
        if ROOT_STITCH_NAME in self.stitches:
            return ROOT_STITCH_NAME
        return next(iter(self.stitches))


@dataclass(slots=True)
class StoryTree:
    """Parsed, validated story. Not mutated after construction."""

    knots: Dict[str, KnotDef]
    nodes: NodeArena
    start: Address
    variables: Dict[str, VariableDecl] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)

    def get_stitch(self, address: Address) -> StitchDef:
        return self.knots[address.knot].stitches[address.stitch]

    def has_address(self, address: Address) -> bool:
        knot = self.knots.get(address.knot)
        return knot is not None and address.stitch in knot.stitches

    def iter_stitches(self) -> Iterator[StitchDef]:
        for knot in self.knots.values():
            yield from knot.stitches.values()
