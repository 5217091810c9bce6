"""Runtime that follows a story tree and hands lines and choices to a caller."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from storyloom.core.rng import RNG
from storyloom.core.types import PromptKind, StoryStatus
from storyloom.domain.address import Address
from storyloom.domain.defs import (
    AssignmentNode,
    ChoiceDef,
    ChoiceSetNode,
    ContentLine,
    DivertFragment,
    GatherNode,
    LineNode,
    StoryTree,
)
from storyloom.domain.state import PresentedChoice, StoryState
from storyloom.domain.variable import PyValue, Variable
from storyloom.services.errors import (
    ChoicePendingError,
    ConstantViolationError,
    InvalidAddressError,
    InvalidChoiceError,
    InvalidVariableError,
    MadeChoiceWithoutChoiceError,
    OutOfChoicesError,
    StoryFinishedError,
    TypeMismatchError,
)
from storyloom.services.evaluator import ContentRenderer, ExpressionEvaluator, divert_address
from storyloom.services.issues import IssueLog
from storyloom.services.line_buffer import Line, RenderedLine, process_buffer
from storyloom.services.story_validator import resolve_address

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Choice:
    """A choice presented to the caller; its index in the prompt selects it."""

    text: str
    tags: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Prompt:
    """What the caller should do after a resume."""

    kind: PromptKind
    choices: List[Choice] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.kind == "done"

    def get_choices(self) -> List[Choice] | None:
        if self.kind != "choice":
            return None
        return list(self.choices)


def _prompt_for(presented: List[PresentedChoice]) -> Prompt:
    choices = [Choice(text=item.text, tags=list(item.tags)) for item in presented]
    return Prompt(kind="choice", choices=choices)


def new_story_state(tree: StoryTree, seed: int) -> StoryState:
    """Fresh state positioned at the start of the story."""
    return StoryState(
        seed=seed,
        rng=RNG(seed),
        location=tree.start,
        variables={name: decl.initial for name, decl in tree.variables.items()},
    )


class Story:
    """A followable story: an immutable tree plus the state of one playthrough."""

    def __init__(self, tree: StoryTree, state: StoryState, *, log: IssueLog | None = None) -> None:
        self._tree = tree
        self._state = state
        self._log = log or IssueLog()
        self._evaluator = ExpressionEvaluator(state)
        self._renderer = ContentRenderer(state, self._evaluator)

    @property
    def tree(self) -> StoryTree:
        return self._tree

    @property
    def state(self) -> StoryState:
        return self._state

    @property
    def log(self) -> IssueLog:
        """TODO comments and warnings found while reading the script."""
        return self._log

    @property
    def status(self) -> StoryStatus:
        return self._state.status

    def resume(self, buffer: List[Line]) -> Prompt:
        """Follow the story until it branches or ends, appending text to ``buffer``.

        Raises StoryFinishedError after the end has been reached and
        ChoicePendingError while a choice is waiting to be made.
        """
        if self._state.status == "done":
            raise StoryFinishedError("The story has finished; use move_to to continue elsewhere.")
        if self._state.status == "presenting":
            raise ChoicePendingError("A choice must be made before resuming.")
        rendered: List[RenderedLine] = []
        prompt = self._follow(rendered)
        buffer.extend(process_buffer(rendered))
        return prompt

    def make_choice(self, index: int) -> None:
        """Select one of the presented choices by its index."""
        presented = self._state.presented
        if self._state.status != "presenting" or not presented:
            raise MadeChoiceWithoutChoiceError("No choices are being presented.")
        if not 0 <= index < len(presented):
            raise InvalidChoiceError(index, len(presented))
        branch_id = presented[index].branch_id
        self._state.presented = []
        self._take_branch(branch_id)
        self._state.status = "awaiting_resume"
        logger.debug("Choice %d taken (branch node %d)", index, branch_id)

    def move_to(self, knot: str, stitch: str | None = None) -> None:
        """Relocate to a knot (its default stitch) or to one of its stitches.

        The visit count of the target is incremented when it is entered on the
        next resume.
        """
        address = self._resolve_location(knot, stitch)
        self._state.location = address
        self._state.frames = []
        self._state.presented = []
        self._state.status = "awaiting_resume"
        logger.debug("Moved to %s", address.to_path())

    def current_prompt(self) -> Prompt | None:
        """The choices still waiting for a selection, e.g. after restoring a save."""
        if self._state.status == "done":
            return Prompt(kind="done")
        if self._state.status != "presenting":
            return None
        return _prompt_for(self._state.presented)

    def get_current_location(self) -> tuple[str, str | None]:
        location = self._state.location
        return location.knot, None if location.is_root_stitch else location.stitch

    def get_num_visited(self, knot: str, stitch: str | None = None) -> int:
        return self._state.visits(self._resolve_location(knot, stitch))

    def get_story_tags(self) -> List[str]:
        return list(self._tree.tags)

    def get_knot_tags(self, knot: str) -> List[str]:
        knot_def = self._tree.knots.get(knot)
        if knot_def is None:
            raise InvalidAddressError(f"Knot '{knot}' does not exist.")
        return list(knot_def.tags)

    def get_variable(self, name: str) -> PyValue:
        return self._lookup(name).to_python()

    def get_variable_as_string(self, name: str) -> str:
        return self._lookup(name).to_text()

    def set_variable(self, name: str, value: PyValue | Variable) -> None:
        """Assign a global variable; its stored value is untouched on failure."""
        decl = self._tree.variables.get(name)
        if decl is None:
            raise InvalidVariableError(f"Variable '{name}' is not declared.")
        if decl.is_constant:
            raise ConstantViolationError(f"'{name}' is a constant and cannot be changed.")
        expected = decl.initial.kind
        if expected == "divert":
            if isinstance(value, Variable):
                if value.kind != "divert":
                    raise TypeMismatchError(name, expected, value.kind)
                value = str(value.value)
            if not isinstance(value, str):
                raise TypeMismatchError(name, expected, type(value).__name__)
            target = value.removeprefix("->").strip()
            address = resolve_address(self._tree, target, "")
            if address is None:
                raise InvalidAddressError(f"Divert target '{target}' does not exist.")
            self._state.variables[name] = Variable.divert(address.to_path())
            return
        try:
            new_value = Variable.from_value(value)
        except TypeError as exc:
            raise TypeMismatchError(name, expected, type(value).__name__) from exc
        if new_value.kind != expected:
            raise TypeMismatchError(name, expected, new_value.kind)
        self._state.variables[name] = new_value

    def _lookup(self, name: str) -> Variable:
        try:
            return self._state.variables[name]
        except KeyError as exc:
            raise InvalidVariableError(f"Variable '{name}' is not declared.") from exc

    def _resolve_location(self, knot: str, stitch: str | None) -> Address:
        knot_def = self._tree.knots.get(knot)
        if knot_def is None:
            raise InvalidAddressError(f"Knot '{knot}' does not exist.")
        if stitch is None:
            return Address(knot, knot_def.default_stitch)
        if stitch not in knot_def.stitches:
            raise InvalidAddressError(f"Stitch '{stitch}' does not exist in knot '{knot}'.")
        return Address(knot, stitch)

    def _follow(self, rendered: List[RenderedLine]) -> Prompt:
        state = self._state
        while True:
            event = self._advance(rendered)
            if isinstance(event, Address):
                logger.debug("Divert to %s", event.to_path())
                state.location = event
                state.frames = []
                continue
            if isinstance(event, ChoiceSetNode):
                prompt = self._present(event)
                if prompt is not None:
                    return prompt
                fallback_id = self._find_fallback(event)
                if fallback_id is None:
                    raise OutOfChoicesError(state.location.to_path(), event.line_number)
                logger.debug("No choices left at line %d; following fallback", event.line_number)
                self._take_branch(fallback_id)
                continue
            logger.debug("Story finished at %s", state.location.to_path())
            state.status = "done"
            state.frames = []
            return Prompt(kind="done")

    def _advance(self, rendered: List[RenderedLine]) -> Address | ChoiceSetNode | None:
        """Walk forward until a choice set, a divert, or the end of the content.

        Returns the choice set, the divert target, or None for END/DONE and
        exhausted content.
        """
        state = self._state
        nodes = self._tree.nodes
        if not state.frames:
            stitch = self._tree.get_stitch(state.location)
            state.visit_counts[state.location] = state.visits(state.location) + 1
            state.frames = [[stitch.container_id, 0]]
        while state.frames:
            frame = state.frames[-1]
            container = nodes.container(frame[0])
            if frame[1] >= len(container.items):
                state.frames.pop()
                continue
            node = nodes.get(container.items[frame[1]])
            if isinstance(node, ChoiceSetNode):
                return node
            frame[1] += 1
            line: ContentLine | None = None
            if isinstance(node, LineNode):
                line = node.line
            elif isinstance(node, GatherNode):
                line = node.line
            elif isinstance(node, AssignmentNode):
                self._assign(node)
            if line is None:
                continue
            divert = self._emit(line, rendered)
            if divert is not None:
                return divert_address(divert, state)
        return None

    def _emit(self, line: ContentLine, rendered: List[RenderedLine]) -> DivertFragment | None:
        text, divert = self._renderer.render(line.fragments)
        if divert is not None and not text.endswith(" "):
            text += " "
        rendered.append(
            RenderedLine(
                text=text,
                glue_begin=line.glue_begin,
                glue_end=line.glue_end or divert is not None,
                tags=list(line.tags),
            )
        )
        return divert

    def _assign(self, node: AssignmentNode) -> None:
        value = self._evaluator.evaluate(node.expression)
        expected = self._tree.variables[node.name].initial.kind
        if value.kind != expected:
            raise TypeMismatchError(node.name, expected, value.kind)
        self._state.variables[node.name] = value

    def _is_available(self, branch_id: int, choice: ChoiceDef) -> bool:
        if not choice.is_sticky and self._state.times_chosen(branch_id) > 0:
            return False
        return all(self._evaluator.is_true(condition) for condition in choice.conditions)

    def _present(self, choice_set: ChoiceSetNode) -> Prompt | None:
        presented: List[PresentedChoice] = []
        for branch_id in choice_set.branch_ids:
            choice = self._tree.nodes.branch(branch_id).choice
            if choice.is_fallback or not self._is_available(branch_id, choice):
                continue
            text, _ = self._renderer.render(choice.display_line.fragments)
            presented.append(
                PresentedChoice(
                    branch_id=branch_id, text=text.strip(), tags=list(choice.display_line.tags)
                )
            )
        if not presented:
            return None
        self._state.presented = presented
        self._state.status = "presenting"
        logger.debug("Presenting %d choice(s) at line %d", len(presented), choice_set.line_number)
        return _prompt_for(presented)

    def _find_fallback(self, choice_set: ChoiceSetNode) -> int | None:
        for branch_id in choice_set.branch_ids:
            choice = self._tree.nodes.branch(branch_id).choice
            if choice.is_fallback and self._is_available(branch_id, choice):
                return branch_id
        return None

    def _take_branch(self, branch_id: int) -> None:
        """Record the selection and continue inside the branch; the gather follows it."""
        state = self._state
        state.choice_counts[branch_id] = state.times_chosen(branch_id) + 1
        state.frames[-1][1] += 1
        state.frames.append([branch_id, 0])
