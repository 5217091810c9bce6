"""Entry point that turns script text into a followable Story."""
from __future__ import annotations

import logging
import secrets

from storyloom.domain.defs import StoryTree
from storyloom.services.errors import ReadError
from storyloom.services.follow_engine import Story, new_story_state
from storyloom.services.issues import IssueCollector, IssueLog
from storyloom.services.lexer import classify_script
from storyloom.services.story_validator import validate_story_tree
from storyloom.services.tree_builder import StoryTreeBuilder

logger = logging.getLogger(__name__)

MAX_RANDOM_SEED = 2**31 - 1


def parse_story(source: str) -> tuple[StoryTree, IssueLog]:
    """Parse and validate a script.

    Raises ReadError carrying every problem found; the returned tree is
    fully resolved and can back any number of stories.
    """
    issues = IssueCollector()
    lines = classify_script(source, issues)
    tree = StoryTreeBuilder(issues).build(lines)
    if tree is not None:
        validate_story_tree(tree, issues)
    if tree is None or issues.has_errors():
        raise ReadError(issues.errors)
    logger.info(
        "Read story with %d knot(s) and %d variable(s)", len(tree.knots), len(tree.variables)
    )
    return tree, issues.log


def read_story_from_string(source: str, *, seed: int | None = None) -> Story:
    """Parse a script and return a story positioned at its start.

    ``seed`` fixes the shuffle order; a random seed is drawn when omitted.
    """
    tree, log = parse_story(source)
    return start_story(tree, log, seed=seed)


def start_story(tree: StoryTree, log: IssueLog, *, seed: int | None = None) -> Story:
    """Return a fresh story over an already parsed tree."""
    if seed is None:
        seed = secrets.randbelow(MAX_RANDOM_SEED)
    return Story(tree, new_story_state(tree, seed), log=log)
