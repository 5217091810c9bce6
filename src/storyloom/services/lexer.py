"""Line classifier: turns raw script text into classified logical lines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from storyloom.core.types import LineKind
from storyloom.domain.address import is_valid_name
from storyloom.services.issues import IssueCollector

logger = logging.getLogger(__name__)

CHOICE_MARKER = "*"
STICKY_CHOICE_MARKER = "+"
GATHER_MARKER = "-"
DIVERT_MARKER = "->"
THREAD_MARKER = "<-"
KNOT_MARKER = "=="
STITCH_MARKER = "="
TAG_MARKER = "#"
ASSIGNMENT_MARKER = "~"
COMMENT_MARKER = "//"
TODO_MARKER = "TODO"
VARIABLE_KEYWORD = "VAR"
CONSTANT_KEYWORD = "CONST"
_UNSUPPORTED_KEYWORDS = ("INCLUDE", "EXTERNAL")


@dataclass(frozen=True, slots=True)
class ClassifiedLine:
    """A logical line with its markers removed.

    ``text`` is the remaining body; for knot and stitch headers it is the name.
    """

    kind: LineKind
    line_number: int
    text: str
    depth: int = 0
    is_sticky: bool = False
    is_constant: bool = False


def classify_script(source: str, issues: IssueCollector) -> List[ClassifiedLine]:
    """Classify every non-blank line; problems are recorded and skipped."""
    lines: List[ClassifiedLine] = []
    for line_number, raw_line in enumerate(source.splitlines(), start=1):
        content = _strip_comment(raw_line, line_number, issues).strip()
        if not content:
            continue
        classified = _classify_line(content, line_number, issues)
        if classified is not None:
            lines.append(classified)
    logger.debug("Classified %d lines", len(lines))
    return lines


def _strip_comment(raw_line: str, line_number: int, issues: IssueCollector) -> str:
    index = _find_comment_start(raw_line)
    if index < 0:
        return raw_line
    comment = raw_line[index + len(COMMENT_MARKER):].strip()
    if comment.startswith(TODO_MARKER):
        note = comment[len(TODO_MARKER):].lstrip(":").strip()
        issues.todo(note, line_number)
    return raw_line[:index]


def _find_comment_start(raw_line: str) -> int:
    """Index of ``//`` outside escapes and outside string literals in braces, or -1."""
    brace_depth = 0
    in_string = False
    index = 0
    while index < len(raw_line):
        char = raw_line[index]
        if char == "\\":
            index += 2
            continue
        if in_string:
            if char == '"':
                in_string = False
        elif char == "{":
            brace_depth += 1
        elif char == "}":
            brace_depth = max(0, brace_depth - 1)
        elif char == '"' and brace_depth > 0:
            in_string = True
        elif raw_line.startswith(COMMENT_MARKER, index):
            return index
        index += 1
    return -1


def _classify_line(content: str, line_number: int, issues: IssueCollector) -> ClassifiedLine | None:
    if content.startswith(KNOT_MARKER):
        return _classify_header("knot", content, line_number, issues)
    if content.startswith(STITCH_MARKER):
        return _classify_header("stitch", content, line_number, issues)
    if content.startswith((CHOICE_MARKER, STICKY_CHOICE_MARKER)):
        return _classify_choice(content, line_number, issues)
    if content.startswith(DIVERT_MARKER):
        return ClassifiedLine("divert", line_number, content)
    if content.startswith(GATHER_MARKER):
        depth, body = _count_markers(content, GATHER_MARKER)
        return ClassifiedLine("gather", line_number, body, depth=depth)
    if content.startswith(THREAD_MARKER):
        issues.error("UNSUPPORTED_FEATURE", "Threads ('<-') are not supported.", line_number)
        return None
    if content.startswith(TAG_MARKER):
        return ClassifiedLine("tag", line_number, content)
    if content.startswith(ASSIGNMENT_MARKER):
        return ClassifiedLine("assignment", line_number, content[1:].strip())
    keyword, _, rest = content.partition(" ")
    if keyword in (VARIABLE_KEYWORD, CONSTANT_KEYWORD):
        return ClassifiedLine(
            "variable",
            line_number,
            rest.strip(),
            is_constant=keyword == CONSTANT_KEYWORD,
        )
    if keyword in _UNSUPPORTED_KEYWORDS:
        issues.error(
            "UNSUPPORTED_FEATURE",
            f"'{keyword}' statements are not supported.",
            line_number,
            keyword=keyword,
        )
        return None
    return ClassifiedLine("text", line_number, content)


def _classify_header(
    kind: LineKind, content: str, line_number: int, issues: IssueCollector
) -> ClassifiedLine | None:
    name = content.lstrip("=").rstrip("=").strip()
    if kind == "knot" and name.startswith("function "):
        issues.error("UNSUPPORTED_FEATURE", "Functions are not supported.", line_number)
        return None
    if not is_valid_name(name):
        issues.error(
            "INVALID_NAME",
            f"'{name}' is not a valid {kind} name; use letters, digits and underscores.",
            line_number,
            name=name,
        )
        return None
    return ClassifiedLine(kind, line_number, name)


def _classify_choice(content: str, line_number: int, issues: IssueCollector) -> ClassifiedLine:
    depth = 0
    markers: set[str] = set()
    index = 0
    while index < len(content) and (content[index] in "*+" or content[index].isspace()):
        if content[index] in "*+":
            depth += 1
            markers.add(content[index])
        index += 1
    if len(markers) > 1:
        issues.error(
            "STICKY_AND_NON_STICKY",
            "A choice cannot mix '*' and '+' markers.",
            line_number,
        )
    is_sticky = markers == {STICKY_CHOICE_MARKER}
    return ClassifiedLine(
        "choice", line_number, content[index:].strip(), depth=depth, is_sticky=is_sticky
    )


def _count_markers(content: str, marker: str) -> tuple[int, str]:
    """Count leading markers ignoring whitespace; stop before a divert arrow."""
    depth = 0
    index = 0
    while index < len(content):
        char = content[index]
        if char == marker and not content.startswith(DIVERT_MARKER, index):
            depth += 1
        elif not char.isspace():
            break
        index += 1
    return depth, content[index:].strip()
