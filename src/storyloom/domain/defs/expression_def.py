"""Expression trees used by conditions, interpolation and assignments."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal as TypingLiteral, Union

from storyloom.domain.address import Address
from storyloom.domain.variable import Variable

ReferenceKind = TypingLiteral["variable", "visits"]


@dataclass(slots=True)
class LiteralExpr:
    value: Variable


@dataclass(slots=True)
class ReferenceExpr:
    """A bare name: a global variable, or a knot/stitch read as its visit count.

    ``kind`` and ``address`` are filled in when the story is validated.
    """

    name: str
    line_number: int
    kind: ReferenceKind | None = None
    address: Address | None = None


@dataclass(slots=True)
class DivertTargetExpr:
    """A ``-> knot.stitch`` literal; resolves to a divert-kind variable."""

    target: str
    line_number: int
    address: Address | None = None


@dataclass(slots=True)
class UnaryExpr:
    op: str
    operand: "Expression"


@dataclass(slots=True)
class BinaryExpr:
    op: str
    left: "Expression"
    right: "Expression"


Expression = Union[LiteralExpr, ReferenceExpr, DivertTargetExpr, UnaryExpr, BinaryExpr]

