"""Issues reported while reading a script, and the authoring log."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

logger = logging.getLogger(__name__)

Severity = str


@dataclass(frozen=True, slots=True)
class Issue:
    severity: Severity
    code: str
    message: str
    line: int
    context: Dict[str, str] = field(default_factory=dict)


def format_issue(issue: Issue) -> str:
    context = " ".join(f"{key}={value}" for key, value in issue.context.items())
    suffix = f" ({context})" if context else ""
    return f"[{issue.severity}] line {issue.line}: {issue.code}: {issue.message}{suffix}"


@dataclass(slots=True)
class IssueLog:
    """Non-fatal notes about a script: TODO comments and warnings."""

    todos: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    def entries(self) -> List[Issue]:
        """All entries ordered by line."""
        return sorted(self.todos + self.warnings, key=lambda issue: issue.line)

    def has_entries(self) -> bool:
        return bool(self.todos or self.warnings)


class IssueCollector:
    """Accumulator threaded through every stage of reading a script."""

    def __init__(self) -> None:
        self._errors: List[Issue] = []
        self.log = IssueLog()

    @property
    def errors(self) -> List[Issue]:
        return list(self._errors)

    def has_errors(self) -> bool:
        return bool(self._errors)

    def error(self, code: str, message: str, line: int, **context: str) -> None:
        self._errors.append(Issue("ERROR", code, message, line, dict(context)))

    def warning(self, code: str, message: str, line: int, **context: str) -> None:
        issue = Issue("WARNING", code, message, line, dict(context))
        logger.warning(format_issue(issue))
        self.log.warnings.append(issue)

    def todo(self, message: str, line: int) -> None:
        self.log.todos.append(Issue("TODO", "TODO", message, line))
