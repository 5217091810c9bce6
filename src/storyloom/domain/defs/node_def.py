"""Arena-allocated nodes that make up a stitch body."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Union

from storyloom.domain.defs.content_def import ContentLine
from storyloom.domain.defs.expression_def import Expression


@dataclass(slots=True)
class ChoiceDef:
    """A single option inside a choice set.

    ``display_line`` is shown at the branch point; ``output_line`` is emitted
    into the flow once the choice is taken.
    """

    display_line: ContentLine
    output_line: ContentLine
    line_number: int
    conditions: List[Expression] = field(default_factory=list)
    is_sticky: bool = False
    is_fallback: bool = False


@dataclass(slots=True)
class ContainerNode:
    """Ordered body of a stitch."""

    items: List[int] = field(default_factory=list)


@dataclass(slots=True)
class BranchNode:
    """Content taken after selecting ``choice``; the first item is its output line."""

    choice: ChoiceDef
    depth: int
    items: List[int] = field(default_factory=list)


@dataclass(slots=True)
class ChoiceSetNode:
    depth: int
    line_number: int
    branch_ids: List[int] = field(default_factory=list)


@dataclass(slots=True)
class LineNode:
    line: ContentLine


@dataclass(slots=True)
class GatherNode:
    depth: int
    line: ContentLine | None = None


@dataclass(slots=True)
class AssignmentNode:
    name: str
    expression: Expression
    line_number: int


Node = Union[ContainerNode, BranchNode, ChoiceSetNode, LineNode, GatherNode, AssignmentNode]
Container = Union[ContainerNode, BranchNode]


class NodeArena:
    """Flat node storage; nodes refer to each other by integer id."""

    def __init__(self) -> None:
        self._nodes: List[Node] = []

    def add(self, node: Node) -> int:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def get(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def container(self, node_id: int) -> Container:
        node = self._nodes[node_id]
        if not isinstance(node, (ContainerNode, BranchNode)):
            raise TypeError(f"node {node_id} is not a container")
        return node

    def branch(self, node_id: int) -> BranchNode:
        node = self._nodes[node_id]
        if not isinstance(node, BranchNode):
            raise TypeError(f"node {node_id} is not a choice branch")
        return node

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(self._nodes)
