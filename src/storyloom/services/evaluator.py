"""Runtime evaluation of expressions and rendering of line content."""
from __future__ import annotations

import math
from typing import Iterator, List

from storyloom.domain.address import Address
from storyloom.domain.defs import (
    AlternativeFragment,
    BinaryExpr,
    ConditionalFragment,
    DivertFragment,
    DivertTargetExpr,
    Expression,
    Fragment,
    InterpolationFragment,
    LiteralExpr,
    ReferenceExpr,
    TextFragment,
    UnaryExpr,
)
from storyloom.domain.state import StoryState
from storyloom.domain.variable import Variable
from storyloom.services.errors import EvaluationError


class ExpressionEvaluator:
    """Evaluates expressions and renders fragments against a StoryState.

    Rendering advances alternative cursors, so it must only be called for
    content that is actually shown.
    """

    def __init__(self, state: StoryState) -> None:
        self._state = state

    def is_true(self, expression: Expression) -> bool:
        return self.evaluate(expression).is_truthy()

    def evaluate(self, expression: Expression) -> Variable:
        if isinstance(expression, LiteralExpr):
            return expression.value
        if isinstance(expression, ReferenceExpr):
            return self._read_reference(expression)
        if isinstance(expression, DivertTargetExpr):
            if expression.address is None:
                raise EvaluationError(f"unresolved divert target '{expression.target}'")
            return Variable.divert(expression.address.to_path())
        if isinstance(expression, UnaryExpr):
            return self._unary(expression)
        return self._binary(expression)

    def _read_reference(self, reference: ReferenceExpr) -> Variable:
        if reference.kind == "visits" and reference.address is not None:
            return Variable("int", self._state.visits(reference.address))
        try:
            return self._state.variables[reference.name]
        except KeyError as exc:
            raise EvaluationError(f"unknown variable '{reference.name}'") from exc

    def _unary(self, expression: UnaryExpr) -> Variable:
        operand = self.evaluate(expression.operand)
        if expression.op == "not":
            return Variable("bool", not operand.is_truthy())
        if not operand.is_numeric:
            raise EvaluationError(f"cannot negate a {operand.kind} value")
        return Variable(operand.kind, -operand.value)

    def _binary(self, expression: BinaryExpr) -> Variable:
        op = expression.op
        left = self.evaluate(expression.left)
        if op == "and":
            if not left.is_truthy():
                return Variable("bool", False)
            return Variable("bool", self.evaluate(expression.right).is_truthy())
        if op == "or":
            if left.is_truthy():
                return Variable("bool", True)
            return Variable("bool", self.evaluate(expression.right).is_truthy())
        right = self.evaluate(expression.right)
        if op in ("==", "!="):
            equal = _values_equal(left, right)
            return Variable("bool", equal if op == "==" else not equal)
        if op == "+" and left.kind == right.kind == "string":
            return Variable("string", str(left.value) + str(right.value))
        if not (left.is_numeric and right.is_numeric):
            raise EvaluationError(f"cannot apply '{op}' to {left.kind} and {right.kind} values")
        if op in ("<", "<=", ">", ">="):
            return Variable("bool", _compare(op, left.value, right.value))
        return _arithmetic(op, left, right)


def _values_equal(left: Variable, right: Variable) -> bool:
    if left.is_numeric and right.is_numeric:
        return left.value == right.value
    if left.kind != right.kind:
        raise EvaluationError(f"cannot compare {left.kind} with {right.kind}")
    return left.value == right.value


def _compare(op: str, left, right) -> bool:
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _arithmetic(op: str, left: Variable, right: Variable) -> Variable:
    if left.kind == right.kind == "int":
        a, b = int(left.value), int(right.value)
        if op == "+":
            return Variable("int", a + b)
        if op == "-":
            return Variable("int", a - b)
        if op == "*":
            return Variable("int", a * b)
        if b == 0:
            raise EvaluationError("integer division by zero")
        quotient = abs(a) // abs(b) * (1 if (a >= 0) == (b >= 0) else -1)
        if op == "/":
            return Variable("int", quotient)
        return Variable("int", a - b * quotient)
    x, y = float(left.value), float(right.value)
    if op == "+":
        return Variable("float", x + y)
    if op == "-":
        return Variable("float", x - y)
    if op == "*":
        return Variable("float", x * y)
    if y == 0:
        raise EvaluationError("division by zero")
    if op == "/":
        return Variable("float", x / y)
    return Variable("float", math.fmod(x, y))


class ContentRenderer:
    """Renders fragments to text, stopping at the first divert reached."""

    def __init__(self, state: StoryState, evaluator: ExpressionEvaluator) -> None:
        self._state = state
        self._evaluator = evaluator

    def render(self, fragments: List[Fragment]) -> tuple[str, DivertFragment | None]:
        parts: List[str] = []
        stack: List[Iterator[Fragment]] = [iter(fragments)]
        while stack:
            fragment = next(stack[-1], None)
            if fragment is None:
                stack.pop()
                continue
            if isinstance(fragment, TextFragment):
                parts.append(fragment.text)
            elif isinstance(fragment, InterpolationFragment):
                parts.append(self._evaluator.evaluate(fragment.expression).to_text())
            elif isinstance(fragment, ConditionalFragment):
                taken = self._evaluator.is_true(fragment.condition)
                stack.append(iter(fragment.when_true if taken else fragment.when_false))
            elif isinstance(fragment, AlternativeFragment):
                index = self._next_alternative(fragment)
                if index is not None:
                    stack.append(iter(fragment.items[index]))
            elif isinstance(fragment, DivertFragment):
                return "".join(parts), fragment
        return "".join(parts), None

    def _next_alternative(self, alternative: AlternativeFragment) -> int | None:
        size = len(alternative.items)
        cursors = self._state.sequence_cursors
        visit = cursors.get(alternative.sequence_id, 0)
        cursors[alternative.sequence_id] = visit + 1
        if alternative.mode == "sequence":
            return min(visit, size - 1)
        if alternative.mode == "cycle":
            return visit % size
        if alternative.mode == "once":
            return visit if visit < size else None
        position = visit % size
        orders = self._state.shuffle_orders
        if position == 0 or alternative.sequence_id not in orders:
            orders[alternative.sequence_id] = self._state.rng.permutation(size)
        return orders[alternative.sequence_id][position]


def divert_address(divert: DivertFragment, state: StoryState) -> Address | None:
    """Target of a divert, or None for END/DONE."""
    if divert.is_end:
        return None
    if divert.variable is not None:
        value = state.variables[divert.variable]
        return Address.from_path(str(value.value))
    if divert.address is None:
        raise EvaluationError(f"unresolved divert target '{divert.target}'")
    return divert.address
