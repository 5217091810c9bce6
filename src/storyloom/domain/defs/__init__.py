"""Domain definition exports."""

from .content_def import (
    AlternativeFragment,
    ConditionalFragment,
    ContentLine,
    DivertFragment,
    Fragment,
    InterpolationFragment,
    TextFragment,
)
from .expression_def import (
    BinaryExpr,
    DivertTargetExpr,
    Expression,
    LiteralExpr,
    ReferenceExpr,
    UnaryExpr,
)
from .node_def import (
    AssignmentNode,
    BranchNode,
    ChoiceDef,
    ChoiceSetNode,
    ContainerNode,
    GatherNode,
    LineNode,
    NodeArena,
)
from .story_def import KnotDef, StitchDef, StoryTree, VariableDecl

__all__ = [
    "AlternativeFragment",
    "AssignmentNode",
    "BinaryExpr",
    "BranchNode",
    "ChoiceDef",
    "ChoiceSetNode",
    "ConditionalFragment",
    "ContainerNode",
    "ContentLine",
    "DivertFragment",
    "DivertTargetExpr",
    "Expression",
    "Fragment",
    "GatherNode",
    "InterpolationFragment",
    "KnotDef",
    "LineNode",
    "LiteralExpr",
    "NodeArena",
    "ReferenceExpr",
    "StitchDef",
    "StoryTree",
    "TextFragment",
    "UnaryExpr",
    "VariableDecl",
]
