"""Static validation of a built story tree.

Resolves every divert and name reference in place, infers expression types,
and checks choice-set and assignment rules. All problems are collected; none
stop the walk.
"""
from __future__ import annotations

from typing import Dict, List

from storyloom.core.types import VariableKind
from storyloom.domain.address import END_TARGETS, Address
from storyloom.domain.defs import (
    AssignmentNode,
    BinaryExpr,
    ChoiceSetNode,
    ConditionalFragment,
    ContentLine,
    DivertFragment,
    DivertTargetExpr,
    Expression,
    GatherNode,
    InterpolationFragment,
    LineNode,
    LiteralExpr,
    ReferenceExpr,
    StoryTree,
    UnaryExpr,
    VariableDecl,
)
from storyloom.domain.defs.content_def import iter_fragments
from storyloom.domain.variable import NUMERIC_KINDS, Variable
from storyloom.services.issues import IssueCollector

_CONDITION_KINDS: tuple[VariableKind, ...] = ("bool", "int", "float")
_ORDERING_OPS = ("<", "<=", ">", ">=")
_EQUALITY_OPS = ("==", "!=")
_ARITHMETIC_OPS = ("-", "*", "/", "%")


def resolve_address(tree: StoryTree, target: str, current_knot: str) -> Address | None:
    """Resolve ``knot.stitch``, a stitch of ``current_knot`` or a bare ``knot``.

    A bare name matches a stitch of the current knot before any knot.
    """
    knot_name, _, stitch_name = target.partition(".")
    if stitch_name:
        knot = tree.knots.get(knot_name)
        if knot is not None and stitch_name in knot.stitches:
            return Address(knot_name, stitch_name)
        return None
    current = tree.knots.get(current_knot)
    if current is not None and target in current.stitches:
        return Address(current_knot, target)
    knot = tree.knots.get(target)
    if knot is not None and knot.stitches:
        return Address(target, knot.default_stitch)
    return None


def validate_story_tree(tree: StoryTree, issues: IssueCollector) -> None:
    _StoryValidator(tree, issues).run()


class _StoryValidator:
    def __init__(self, tree: StoryTree, issues: IssueCollector) -> None:
        self._tree = tree
        self._issues = issues
        self._variables: Dict[str, VariableDecl] = tree.variables
        self._knot = ""

    def run(self) -> None:
        self._check_declarations()
        for stitch in self._tree.iter_stitches():
            self._knot = stitch.knot
            self._check_container(stitch.container_id)

    def _check_declarations(self) -> None:
        for decl in self._variables.values():
            if decl.name in self._tree.knots:
                self._issues.warning(
                    "NAME_SHADOWS_KNOT",
                    f"Variable '{decl.name}' shares its name with a knot; "
                    "bare references read the variable.",
                    decl.line_number,
                    name=decl.name,
                )
            if decl.initial.kind != "divert":
                continue
            address = resolve_address(self._tree, str(decl.initial.value), "")
            if address is None:
                self._unknown_address(str(decl.initial.value), decl.line_number)
            else:
                decl.initial = Variable.divert(address.to_path())

    def _check_container(self, container_id: int) -> None:
        pending: List[int] = [container_id]
        while pending:
            container = self._tree.nodes.container(pending.pop())
            for node_id in container.items:
                node = self._tree.nodes.get(node_id)
                if isinstance(node, LineNode):
                    self._check_line(node.line)
                elif isinstance(node, GatherNode):
                    if node.line is not None:
                        self._check_line(node.line)
                elif isinstance(node, AssignmentNode):
                    self._check_assignment(node)
                elif isinstance(node, ChoiceSetNode):
                    self._check_choice_set(node)
                    pending.extend(node.branch_ids)

    def _check_choice_set(self, choice_set: ChoiceSetNode) -> None:
        branches = [self._tree.nodes.branch(branch_id) for branch_id in choice_set.branch_ids]
        fallbacks = [branch.choice for branch in branches if branch.choice.is_fallback]
        if len(fallbacks) > 1:
            self._issues.error(
                "MULTIPLE_FALLBACKS",
                "A choice set can have at most one fallback choice.",
                fallbacks[1].line_number,
            )
        for fallback in fallbacks:
            if not fallback.is_sticky:
                self._issues.warning(
                    "FRAGILE_FALLBACK",
                    "Non-sticky fallback choice can only be taken once; "
                    "reaching this choice set again raises OutOfChoicesError.",
                    fallback.line_number,
                )
        for branch in branches:
            for condition in branch.choice.conditions:
                self._check_condition(condition, branch.choice.line_number)
            self._check_line(branch.choice.display_line)

    def _check_assignment(self, node: AssignmentNode) -> None:
        decl = self._variables.get(node.name)
        if decl is None:
            self._issues.error(
                "UNKNOWN_VARIABLE",
                f"Cannot assign to undeclared variable '{node.name}'.",
                node.line_number,
                name=node.name,
            )
            return
        if decl.is_constant:
            self._issues.error(
                "ASSIGN_TO_CONSTANT",
                f"'{node.name}' is a constant and cannot be assigned.",
                node.line_number,
                name=node.name,
            )
        kind = self._infer(node.expression, node.line_number)
        if kind is not None and kind != decl.initial.kind:
            self._type_mismatch(
                f"'{node.name}' holds {decl.initial.kind} values, got {kind}", node.line_number
            )

    def _check_line(self, line: ContentLine) -> None:
        for fragment in iter_fragments(line.fragments):
            if isinstance(fragment, DivertFragment):
                self._resolve_divert(fragment)
            elif isinstance(fragment, InterpolationFragment):
                self._infer(fragment.expression, line.line_number)
            elif isinstance(fragment, ConditionalFragment):
                self._check_condition(fragment.condition, line.line_number)

    def _check_condition(self, condition: Expression, line_number: int) -> None:
        kind = self._infer(condition, line_number)
        if kind is not None and kind not in _CONDITION_KINDS:
            self._type_mismatch(f"a condition cannot test a {kind} value", line_number)

    def _resolve_divert(self, divert: DivertFragment) -> None:
        if divert.target in END_TARGETS:
            divert.is_end = True
            return
        decl = self._variables.get(divert.target)
        if decl is not None and decl.initial.kind == "divert":
            divert.variable = divert.target
            return
        address = resolve_address(self._tree, divert.target, self._knot)
        if address is None:
            self._unknown_address(divert.target, divert.line_number)
        divert.address = address

    def _unknown_address(self, target: str, line_number: int) -> None:
        self._issues.error(
            "UNKNOWN_ADDRESS",
            f"Divert target '{target}' does not match any knot or stitch.",
            line_number,
            target=target,
        )

    def _type_mismatch(self, message: str, line_number: int) -> None:
        self._issues.error("TYPE_MISMATCH", message, line_number)

    def _infer(self, expression: Expression, line_number: int) -> VariableKind | None:
        """Return the value kind of an expression, or None after reporting a problem."""
        if isinstance(expression, LiteralExpr):
            return expression.value.kind
        if isinstance(expression, ReferenceExpr):
            return self._infer_reference(expression)
        if isinstance(expression, DivertTargetExpr):
            expression.address = resolve_address(self._tree, expression.target, self._knot)
            if expression.address is None:
                self._unknown_address(expression.target, expression.line_number)
                return None
            return "divert"
        if isinstance(expression, UnaryExpr):
            operand = self._infer(expression.operand, line_number)
            if operand is None:
                return None
            if expression.op == "not":
                if operand not in _CONDITION_KINDS:
                    self._type_mismatch(f"'not' cannot apply to a {operand} value", line_number)
                    return None
                return "bool"
            if operand not in NUMERIC_KINDS:
                self._type_mismatch(f"cannot negate a {operand} value", line_number)
                return None
            return operand
        return self._infer_binary(expression, line_number)

    def _infer_reference(self, reference: ReferenceExpr) -> VariableKind | None:
        decl = self._variables.get(reference.name)
        if decl is not None:
            reference.kind = "variable"
            return decl.initial.kind
        address = resolve_address(self._tree, reference.name, self._knot)
        if address is None:
            self._issues.error(
                "UNKNOWN_NAME",
                f"'{reference.name}' is neither a variable nor a knot or stitch.",
                reference.line_number,
                name=reference.name,
            )
            return None
        reference.kind = "visits"
        reference.address = address
        return "int"

    def _infer_binary(self, expression: BinaryExpr, line_number: int) -> VariableKind | None:
        left = self._infer(expression.left, line_number)
        right = self._infer(expression.right, line_number)
        if left is None or right is None:
            return None
        op = expression.op
        numeric = left in NUMERIC_KINDS and right in NUMERIC_KINDS
        if op in ("and", "or"):
            if left in _CONDITION_KINDS and right in _CONDITION_KINDS:
                return "bool"
        elif op in _EQUALITY_OPS:
            if numeric or left == right:
                return "bool"
        elif op in _ORDERING_OPS:
            if numeric:
                return "bool"
        elif op == "+" and left == right == "string":
            return "string"
        elif op == "+" or op in _ARITHMETIC_OPS:
            if numeric:
                return "float" if "float" in (left, right) else "int"
        self._type_mismatch(f"cannot apply '{op}' to {left} and {right} values", line_number)
        return None
