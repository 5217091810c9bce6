"""Builds the knot/stitch tree and node arena from classified lines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List

from storyloom.domain.address import ROOT_KNOT_NAME, ROOT_STITCH_NAME, Address
from storyloom.domain.defs import (
    AssignmentNode,
    BranchNode,
    ChoiceSetNode,
    ContainerNode,
    GatherNode,
    KnotDef,
    LineNode,
    NodeArena,
    StitchDef,
    StoryTree,
    VariableDecl,
)
from storyloom.services.expression_parser import (
    SequenceIds,
    parse_assignment,
    parse_choice,
    parse_declaration,
    parse_line,
    split_tags,
)
from storyloom.services.issues import IssueCollector
from storyloom.services.lexer import ClassifiedLine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Frame:
    """An open container; depth 0 is the stitch body, N the branch of a depth-N choice."""

    depth: int
    container_id: int
    open_set_id: int | None = None


class StoryTreeBuilder:
    """Single pass over classified lines with an explicit stack of open frames."""

    def __init__(self, issues: IssueCollector, ids: SequenceIds | None = None) -> None:
        self._issues = issues
        self._ids = ids or SequenceIds()
        self._nodes = NodeArena()
        self._knots: Dict[str, KnotDef] = {}
        self._variables: Dict[str, VariableDecl] = {}
        self._global_tags: List[str] = []
        self._knot: KnotDef | None = None
        self._frames: List[_Frame] = []
        self._pending_tags: List[str] = []
        self._seen_knot_header = False
        self._collecting_knot_tags = False

    def build(self, lines: List[ClassifiedLine]) -> StoryTree | None:
        """Return the tree, or None when there is nothing to follow."""
        for line in lines:
            self._handle(line)
        self._close_knot()
        start = self._find_start()
        if start is None:
            self._issues.error("EMPTY_STORY", "The script has no story content.", 1)
            return None
        logger.debug("Built %d knots and %d nodes", len(self._knots), len(self._nodes))
        return StoryTree(
            knots=self._knots,
            nodes=self._nodes,
            start=start,
            variables=self._variables,
            tags=self._global_tags,
        )

    def _handle(self, line: ClassifiedLine) -> None:
        if line.kind == "variable":
            self._add_declaration(line)
        elif line.kind == "tag":
            self._add_tags(line)
        elif line.kind == "knot":
            self._open_knot(line)
        elif line.kind == "stitch":
            self._open_stitch(line)
        elif line.kind == "choice":
            self._add_choice(line)
        elif line.kind == "gather":
            self._add_gather(line)
        elif line.kind == "assignment":
            self._add_assignment(line)
        else:
            self._add_text(line)

    def _add_declaration(self, line: ClassifiedLine) -> None:
        if self._seen_knot_header:
            self._issues.error(
                "VARIABLE_OUTSIDE_PREAMBLE",
                "Variables and constants must be declared before the first knot.",
                line.line_number,
            )
            return
        parsed = parse_declaration(line.text, line.line_number, self._issues)
        if parsed is None:
            return
        name, value = parsed
        if name in self._variables:
            self._issues.error(
                "DUPLICATE_VARIABLE",
                f"'{name}' is already declared on line {self._variables[name].line_number}.",
                line.line_number,
                name=name,
            )
            return
        self._variables[name] = VariableDecl(
            name=name, initial=value, line_number=line.line_number, is_constant=line.is_constant
        )

    def _add_tags(self, line: ClassifiedLine) -> None:
        _, tags = split_tags(line.text)
        if self._knot is None:
            self._global_tags.extend(tags)
        elif self._collecting_knot_tags:
            self._knot.tags.extend(tags)
        else:
            self._pending_tags.extend(tags)

    def _open_knot(self, line: ClassifiedLine) -> None:
        self._close_knot()
        self._seen_knot_header = True
        knot = KnotDef(name=line.text, line_number=line.line_number)
        if line.text in self._knots:
            self._issues.error(
                "DUPLICATE_KNOT",
                f"Knot '{line.text}' is already defined on line {self._knots[line.text].line_number}.",
                line.line_number,
                knot=line.text,
            )
        else:
            self._knots[line.text] = knot
        self._knot = knot
        self._collecting_knot_tags = True

    def _close_knot(self) -> None:
        knot = self._knot
        self._frames = []
        self._pending_tags = []
        if knot is None:
            return
        if not knot.stitches:
            self._issues.error(
                "EMPTY_KNOT", f"Knot '{knot.name}' has no content.", knot.line_number, knot=knot.name
            )
        for stitch in knot.stitches.values():
            if not self._nodes.container(stitch.container_id).items:
                self._issues.error(
                    "EMPTY_STITCH",
                    f"Stitch '{stitch.name}' in knot '{knot.name}' has no content.",
                    stitch.line_number,
                    knot=knot.name,
                    stitch=stitch.name,
                )

    def _open_stitch(self, line: ClassifiedLine) -> None:
        if self._knot is None:
            self._issues.error(
                "STITCH_WITHOUT_KNOT",
                f"Stitch '{line.text}' must be inside a knot.",
                line.line_number,
                stitch=line.text,
            )
            return
        if line.text in self._knot.stitches:
            self._issues.error(
                "DUPLICATE_STITCH",
                f"Stitch '{line.text}' is already defined in knot '{self._knot.name}'.",
                line.line_number,
                knot=self._knot.name,
                stitch=line.text,
            )
            self._frames = [_Frame(0, self._nodes.add(ContainerNode()))]
            return
        self._start_stitch(line.text, line.line_number)
        self._collecting_knot_tags = False

    def _start_stitch(self, name: str, line_number: int) -> None:
        assert self._knot is not None
        container_id = self._nodes.add(ContainerNode())
        self._knot.stitches[name] = StitchDef(
            knot=self._knot.name, name=name, container_id=container_id, line_number=line_number
        )
        self._frames = [_Frame(0, container_id)]

    def _top(self, line_number: int) -> _Frame:
        """The innermost open frame, opening the implicit root knot or root stitch if needed."""
        if not self._frames:
            if self._knot is None:
                self._knot = KnotDef(name=ROOT_KNOT_NAME, line_number=line_number)
                self._knots[ROOT_KNOT_NAME] = self._knot
            self._start_stitch(ROOT_STITCH_NAME, line_number)
        self._collecting_knot_tags = False
        return self._frames[-1]

    def _take_pending_tags(self) -> List[str]:
        tags, self._pending_tags = self._pending_tags, []
        return tags

    def _append(self, frame: _Frame, node_id: int) -> None:
        self._nodes.container(frame.container_id).items.append(node_id)

    def _add_text(self, line: ClassifiedLine) -> None:
        frame = self._top(line.line_number)
        content = parse_line(line.text, line.line_number, self._issues, self._ids)
        content.tags = self._take_pending_tags() + content.tags
        self._append(frame, self._nodes.add(LineNode(content)))

    def _add_assignment(self, line: ClassifiedLine) -> None:
        frame = self._top(line.line_number)
        parsed = parse_assignment(line.text, line.line_number, self._issues)
        if parsed is None:
            return
        name, expression = parsed
        self._append(frame, self._nodes.add(AssignmentNode(name, expression, line.line_number)))

    def _clamp_depth(self, line: ClassifiedLine) -> int:
        innermost = self._frames[-1].depth
        if line.depth > innermost + 1:
            self._issues.error(
                "INCONSISTENT_DEPTH",
                f"Depth {line.depth} follows depth {innermost}; nesting may only grow one level at a time.",
                line.line_number,
            )
            return innermost + 1
        return line.depth

    def _add_choice(self, line: ClassifiedLine) -> None:
        self._top(line.line_number)
        depth = self._clamp_depth(line)
        while self._frames[-1].depth >= depth:
            self._frames.pop()
        frame = self._frames[-1]
        if frame.open_set_id is None:
            frame.open_set_id = self._nodes.add(ChoiceSetNode(depth=depth, line_number=line.line_number))
            self._append(frame, frame.open_set_id)
        choice_set = self._nodes.get(frame.open_set_id)
        assert isinstance(choice_set, ChoiceSetNode)

        choice = parse_choice(
            line.text, line.line_number, self._issues, self._ids, is_sticky=line.is_sticky
        )
        tags = self._take_pending_tags()
        choice.display_line.tags = tags + choice.display_line.tags
        choice.output_line.tags = tags + choice.output_line.tags
        branch = BranchNode(choice=choice, depth=depth)
        branch.items.append(self._nodes.add(LineNode(choice.output_line)))
        branch_id = self._nodes.add(branch)
        choice_set.branch_ids.append(branch_id)
        self._frames.append(_Frame(depth, branch_id))

    def _add_gather(self, line: ClassifiedLine) -> None:
        self._top(line.line_number)
        depth = self._clamp_depth(line)
        while self._frames[-1].depth >= depth:
            self._frames.pop()
        frame = self._frames[-1]
        frame.open_set_id = None
        content = None
        if line.text:
            content = parse_line(line.text, line.line_number, self._issues, self._ids)
            content.tags = self._take_pending_tags() + content.tags
        self._append(frame, self._nodes.add(GatherNode(depth=depth, line=content)))

    def _find_start(self) -> Address | None:
        root = self._knots.get(ROOT_KNOT_NAME)
        if root is not None:
            return Address(ROOT_KNOT_NAME, ROOT_STITCH_NAME)
        for knot in self._knots.values():
            if knot.stitches:
                return Address(knot.name, knot.default_stitch)
        return None
