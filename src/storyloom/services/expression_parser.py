"""Parsers for inline content, choice lines, declarations and expressions.

Every public function records problems on the shared ``IssueCollector`` and
returns its best effort, so one bad line never hides the errors after it.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import count
from typing import Iterator, List

from storyloom.core.types import SequenceMode
from storyloom.domain.address import is_valid_name
from storyloom.domain.defs import (
    AlternativeFragment,
    BinaryExpr,
    ChoiceDef,
    ConditionalFragment,
    ContentLine,
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
from storyloom.domain.variable import Variable
from storyloom.services.issues import IssueCollector

GLUE_MARKER = "<>"
DIVERT_MARKER = "->"
TAG_MARKER = "#"

_SEQUENCE_MODES: dict[str, SequenceMode] = {"&": "cycle", "!": "once", "~": "shuffle"}

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>\d+(?:\.\d+)?)
      | (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<divert>->)
      | (?P<op>==|!=|<=|>=|&&|\|\||[-+*/%<>!()])
      | (?P<name>\w+(?:\.\w+)?)
    )
    """,
    re.VERBOSE,
)
_ADDRESS_RE = re.compile(r"^\w+(?:\.\w+)?$")
_ASSIGNMENT_RE = re.compile(r"^(?P<name>\w+)\s*(?P<op>[-+]?=)(?!=)\s*(?P<value>.*)$", re.DOTALL)

_COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")


class ExpressionSyntaxError(ValueError):
    """Raised by the expression parser; callers turn it into an issue."""


class SequenceIds:
    """Hands out alternative ids in source order."""

    def __init__(self) -> None:
        self._counter = count()

    def next(self) -> int:
        return next(self._counter)


def _find_top_level(text: str, marker: str) -> List[int]:
    return [index for index in _iter_top_level(text) if text.startswith(marker, index)]


def _iter_top_level(text: str) -> Iterator[int]:
    """Yield indexes outside braces, escapes and brace-enclosed strings."""
    depth = 0
    in_string = False
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if in_string:
            if char == '"':
                in_string = False
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == '"' and depth > 0:
            in_string = True
        elif depth == 0:
            yield index
        index += 1


def _iter_brace_level(text: str) -> Iterator[int]:
    """Yield indexes at brace depth zero inside embraced text, skipping strings and parens."""
    depth = 0
    paren_depth = 0
    in_string = False
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if in_string:
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1
        elif depth == 0 and paren_depth == 0:
            yield index
        index += 1


def _split_at(text: str, positions: List[int], width: int = 1) -> List[str]:
    parts: List[str] = []
    start = 0
    for position in positions:
        parts.append(text[start:position])
        start = position + width
    parts.append(text[start:])
    return parts


def split_tags(text: str) -> tuple[str, List[str]]:
    """Split trailing ``# tag`` markers off a line."""
    positions = _find_top_level(text, TAG_MARKER)
    if not positions:
        return text, []
    parts = _split_at(text, positions)
    tags = [part.strip() for part in parts[1:] if part.strip()]
    return parts[0], tags


def _split_divert(
    text: str, line_number: int, issues: IssueCollector
) -> tuple[str, str | None]:
    """Return ``(content, target)``; target is '' for a bare arrow, None when absent."""
    positions = _find_top_level(text, DIVERT_MARKER)
    if not positions:
        return text, None
    if len(positions) > 1:
        issues.error(
            "UNSUPPORTED_FEATURE",
            "Only one divert is allowed per line; tunnels are not supported.",
            line_number,
        )
        return text[:positions[0]], None
    parts = _split_at(text, positions, width=len(DIVERT_MARKER))
    target = parts[1].strip()
    if target and not _ADDRESS_RE.match(target):
        issues.error(
            "INVALID_ADDRESS",
            f"'{target}' is not a valid divert target.",
            line_number,
            target=target,
        )
    return parts[0], target


def _strip_glue(text: str) -> tuple[str, bool, bool]:
    stripped = text.strip()
    glue_begin = stripped.startswith(GLUE_MARKER)
    glue_end = stripped.endswith(GLUE_MARKER)
    return text.replace(GLUE_MARKER, ""), glue_begin, glue_end


def parse_line(
    body: str, line_number: int, issues: IssueCollector, ids: SequenceIds
) -> ContentLine:
    """Parse a text, divert or gather body into a content line."""
    content, tags = split_tags(body)
    content, target = _split_divert(content, line_number, issues)
    if target == "":
        issues.error("EMPTY_DIVERT", "Divert is missing a target.", line_number)
    content, glue_begin, glue_end = _strip_glue(content)
    if target:
        content += " "
        glue_end = True
    fragments = parse_fragments(content, line_number, issues, ids)
    if target:
        fragments.append(DivertFragment(target, line_number))
    return ContentLine(
        fragments=fragments,
        line_number=line_number,
        glue_begin=glue_begin,
        glue_end=glue_end,
        tags=tags,
    )


def parse_choice(
    body: str,
    line_number: int,
    issues: IssueCollector,
    ids: SequenceIds,
    *,
    is_sticky: bool,
) -> ChoiceDef:
    """Parse a choice body: leading conditions, ``head[inside]tail`` text, divert, tags."""
    content, tags = split_tags(body)
    conditions: List[Expression] = []
    content = content.lstrip()
    while content.startswith("{"):
        end = _matching_brace(content, 0)
        if end < 0:
            issues.error("UNMATCHED_BRACES", "Choice condition is missing a '}'.", line_number)
            content = ""
            break
        condition = _parse_expression_or_report(content[1:end], line_number, issues)
        if condition is not None:
            conditions.append(condition)
        content = content[end + 1:].lstrip()

    content, target = _split_divert(content, line_number, issues)
    head, inside, tail = _split_brackets(content, line_number, issues)
    display_line = ContentLine(
        fragments=parse_fragments((head + inside).strip(), line_number, issues, ids),
        line_number=line_number,
        tags=list(tags),
    )
    is_fallback = display_line.is_blank()
    if target == "" and not is_fallback:
        issues.error("EMPTY_DIVERT", "Only fallback choices may use an empty divert.", line_number)

    output_text, glue_begin, glue_end = _strip_glue(head + tail)
    if target:
        output_text += " "
        glue_end = True
    fragments = parse_fragments(output_text, line_number, issues, ids)
    if target:
        fragments.append(DivertFragment(target, line_number))
    output_line = ContentLine(
        fragments=fragments,
        line_number=line_number,
        glue_begin=glue_begin,
        glue_end=glue_end,
        tags=list(tags),
    )
    return ChoiceDef(
        display_line=display_line,
        output_line=output_line,
        line_number=line_number,
        conditions=conditions,
        is_sticky=is_sticky,
        is_fallback=is_fallback,
    )


def _split_brackets(text: str, line_number: int, issues: IssueCollector) -> tuple[str, str, str]:
    opens = _find_top_level(text, "[")
    closes = _find_top_level(text, "]")
    if not opens and not closes:
        return text, "", ""
    if len(opens) != 1 or len(closes) != 1 or closes[0] < opens[0]:
        issues.error(
            "BRACKET_MISMATCH",
            "Choice text may contain at most one matched '[...]' pair.",
            line_number,
        )
        return text.replace("[", "").replace("]", ""), "", ""
    start, end = opens[0], closes[0]
    return text[:start], text[start + 1:end], text[end + 1:]


def _matching_brace(text: str, start: int) -> int:
    depth = 0
    in_string = False
    index = start
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if in_string:
            if char == '"':
                in_string = False
        elif char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


def parse_fragments(
    text: str, line_number: int, issues: IssueCollector, ids: SequenceIds
) -> List[Fragment]:
    """Split text into plain text and embraced ``{...}`` fragments."""
    fragments: List[Fragment] = []
    buffer: List[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\\" and index + 1 < len(text):
            buffer.append(text[index + 1])
            index += 2
            continue
        if char == "}":
            issues.error("UNMATCHED_BRACES", "Found '}' without a matching '{'.", line_number)
            index += 1
            continue
        if char != "{":
            buffer.append(char)
            index += 1
            continue
        end = _matching_brace(text, index)
        if end < 0:
            issues.error("UNMATCHED_BRACES", "Found '{' without a matching '}'.", line_number)
            break
        if buffer:
            fragments.append(TextFragment("".join(buffer)))
            buffer = []
        embraced = _parse_embraced(text[index + 1:end], line_number, issues, ids)
        if embraced is not None:
            fragments.append(embraced)
        index = end + 1
    if buffer:
        fragments.append(TextFragment("".join(buffer)))
    return fragments


def _parse_item(
    text: str, line_number: int, issues: IssueCollector, ids: SequenceIds
) -> List[Fragment]:
    """Parse a branch of a conditional or alternative; it may end in a divert."""
    content, target = _split_divert(text, line_number, issues)
    fragments = parse_fragments(content, line_number, issues, ids)
    if target == "":
        issues.error("EMPTY_DIVERT", "Divert is missing a target.", line_number)
    elif target:
        fragments.append(DivertFragment(target, line_number))
    return fragments


def _parse_embraced(
    inner: str, line_number: int, issues: IssueCollector, ids: SequenceIds
) -> Fragment | None:
    if not inner.strip():
        issues.error("EMPTY_EXPRESSION", "Found an empty '{}' expression.", line_number)
        return None
    top_level = list(_iter_brace_level(inner))
    colons = [index for index in top_level if inner[index] == ":"]
    bars = [index for index in top_level if inner[index] == "|"]
    if colons:
        return _parse_conditional(inner, colons[0], line_number, issues, ids)
    stripped = inner.lstrip()
    marker = stripped[0]
    if bars or marker in ("&", "~"):
        mode: SequenceMode = "sequence"
        if marker in _SEQUENCE_MODES:
            mode = _SEQUENCE_MODES[marker]
            offset = len(inner) - len(stripped) + 1
            inner = inner[offset:]
            bars = [index - offset for index in bars]
        items = [_parse_item(part, line_number, issues, ids) for part in _split_at(inner, bars)]
        return AlternativeFragment(mode=mode, items=items, sequence_id=ids.next())
    expression = _parse_expression_or_report(inner, line_number, issues)
    if expression is None:
        return None
    return InterpolationFragment(expression)


def _parse_conditional(
    inner: str, colon: int, line_number: int, issues: IssueCollector, ids: SequenceIds
) -> Fragment | None:
    condition = _parse_expression_or_report(inner[:colon], line_number, issues)
    rest = inner[colon + 1:]
    bars = [index for index in _iter_brace_level(rest) if rest[index] == "|"]
    if len(bars) > 1:
        issues.error(
            "MULTIPLE_ELSE",
            "Conditional text can have at most one '|' separating its else branch.",
            line_number,
        )
        bars = bars[:1]
    parts = _split_at(rest, bars)
    when_true = _parse_item(parts[0], line_number, issues, ids)
    when_false = _parse_item(parts[1], line_number, issues, ids) if len(parts) > 1 else []
    if condition is None:
        return None
    return ConditionalFragment(condition=condition, when_true=when_true, when_false=when_false)


def _parse_expression_or_report(
    text: str, line_number: int, issues: IssueCollector
) -> Expression | None:
    try:
        return parse_expression(text, line_number)
    except ExpressionSyntaxError as exc:
        issues.error("INVALID_EXPRESSION", str(exc), line_number, expression=text.strip())
        return None


def parse_declaration(
    body: str, line_number: int, issues: IssueCollector
) -> tuple[str, Variable] | None:
    """Parse ``name = literal`` from a VAR or CONST line."""
    name, separator, raw_value = body.partition("=")
    name = name.strip()
    if not separator:
        issues.error(
            "INVALID_DECLARATION", "Declarations need the form 'VAR name = value'.", line_number
        )
        return None
    if not is_valid_name(name):
        issues.error("INVALID_NAME", f"'{name}' is not a valid variable name.", line_number, name=name)
        return None
    try:
        value = parse_literal(raw_value.strip())
    except ExpressionSyntaxError as exc:
        issues.error("INVALID_DECLARATION", str(exc), line_number, name=name)
        return None
    return name, value


def parse_literal(text: str) -> Variable:
    """Parse a declared value: bool, number, quoted string or divert target."""
    if text.lower() in ("true", "false"):
        return Variable("bool", text.lower() == "true")
    if text.startswith('"'):
        if len(text) < 2 or not text.endswith('"'):
            raise ExpressionSyntaxError(f"unterminated string literal: {text}")
        return Variable("string", _unescape(text[1:-1]))
    if text.startswith(DIVERT_MARKER):
        target = text[len(DIVERT_MARKER):].strip()
        if not _ADDRESS_RE.match(target):
            raise ExpressionSyntaxError(f"invalid divert target: {text}")
        return Variable.divert(target)
    try:
        if "." in text:
            return Variable("float", float(text))
        return Variable("int", int(text))
    except ValueError as exc:
        raise ExpressionSyntaxError(f"'{text}' is not a valid value") from exc


def parse_assignment(
    body: str, line_number: int, issues: IssueCollector
) -> tuple[str, Expression] | None:
    """Parse ``name = expr``, ``name += expr`` or ``name -= expr``."""
    match = _ASSIGNMENT_RE.match(body.strip())
    if match is None:
        issues.error(
            "INVALID_ASSIGNMENT", "Assignments need the form '~ name = expression'.", line_number
        )
        return None
    name = match.group("name")
    expression = _parse_expression_or_report(match.group("value"), line_number, issues)
    if expression is None:
        return None
    op = match.group("op")
    if op != "=":
        expression = BinaryExpr(op[0], ReferenceExpr(name, line_number), expression)
    return name, expression


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text)


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    text: str


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    stripped_end = len(text.rstrip())
    while position < stripped_end:
        match = _TOKEN_RE.match(text, position)
        if match is None or match.end() == position:
            raise ExpressionSyntaxError(f"unexpected character '{text[position:].strip()[:1]}'")
        kind = match.lastgroup or ""
        tokens.append(_Token(kind, match.group(kind)))
        position = match.end()
    return tokens


def parse_expression(text: str, line_number: int) -> Expression:
    """Parse an expression; raises ExpressionSyntaxError."""
    tokens = _tokenize(text)
    if not tokens:
        raise ExpressionSyntaxError("empty expression")
    parser = _ExpressionParser(tokens, line_number)
    expression = parser.parse_or()
    if not parser.at_end():
        raise ExpressionSyntaxError(f"unexpected '{parser.peek_text()}' in expression")
    return expression


class _ExpressionParser:
    """Recursive descent over the token list, lowest precedence first."""

    def __init__(self, tokens: List[_Token], line_number: int) -> None:
        self._tokens = tokens
        self._position = 0
        self._line_number = line_number

    def at_end(self) -> bool:
        return self._position >= len(self._tokens)

    def peek_text(self) -> str:
        if self.at_end():
            return ""
        return self._tokens[self._position].text

    def _peek_keyword(self) -> str:
        if self.at_end():
            return ""
        token = self._tokens[self._position]
        if token.kind == "name":
            return token.text.lower()
        return token.text

    def _advance(self) -> _Token:
        if self.at_end():
            raise ExpressionSyntaxError("expression ended unexpectedly")
        token = self._tokens[self._position]
        self._position += 1
        return token

    def parse_or(self) -> Expression:
        left = self.parse_and()
        while self._peek_keyword() in ("or", "||"):
            self._advance()
            left = BinaryExpr("or", left, self.parse_and())
        return left

    def parse_and(self) -> Expression:
        left = self.parse_not()
        while self._peek_keyword() in ("and", "&&"):
            self._advance()
            left = BinaryExpr("and", left, self.parse_not())
        return left

    def parse_not(self) -> Expression:
        if self._peek_keyword() in ("not", "!"):
            self._advance()
            return UnaryExpr("not", self.parse_not())
        return self.parse_comparison()

    def parse_comparison(self) -> Expression:
        left = self.parse_additive()
        if self.peek_text() in _COMPARISON_OPS:
            op = self._advance().text
            right = self.parse_additive()
            if self.peek_text() in _COMPARISON_OPS:
                raise ExpressionSyntaxError("comparisons cannot be chained")
            return BinaryExpr(op, left, right)
        return left

    def parse_additive(self) -> Expression:
        left = self.parse_term()
        while self.peek_text() in ("+", "-"):
            op = self._advance().text
            left = BinaryExpr(op, left, self.parse_term())
        return left

    def parse_term(self) -> Expression:
        left = self.parse_unary()
        while self.peek_text() in ("*", "/", "%"):
            op = self._advance().text
            left = BinaryExpr(op, left, self.parse_unary())
        return left

    def parse_unary(self) -> Expression:
        if self.peek_text() == "-":
            self._advance()
            return UnaryExpr("-", self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Expression:
        token = self._advance()
        if token.kind == "number":
            if "." in token.text:
                return LiteralExpr(Variable("float", float(token.text)))
            return LiteralExpr(Variable("int", int(token.text)))
        if token.kind == "string":
            return LiteralExpr(Variable("string", _unescape(token.text[1:-1])))
        if token.kind == "divert":
            target = self._advance()
            if target.kind != "name":
                raise ExpressionSyntaxError("'->' must be followed by a knot or stitch name")
            return DivertTargetExpr(target.text, self._line_number)
        if token.text == "(":
            inner = self.parse_or()
            if self.peek_text() != ")":
                raise ExpressionSyntaxError("missing ')'")
            self._advance()
            return inner
        if token.kind == "name":
            lowered = token.text.lower()
            if lowered in ("true", "false"):
                return LiteralExpr(Variable("bool", lowered == "true"))
            if lowered in ("and", "or", "not"):
                raise ExpressionSyntaxError(f"unexpected '{token.text}'")
            return ReferenceExpr(token.text, self._line_number)
        raise ExpressionSyntaxError(f"unexpected '{token.text}' in expression")
