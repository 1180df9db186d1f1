"""Graph algorithms: validity, context resolution and the branch tree."""

from convograph.graph.branches import (
    BranchPlan,
    branch_children,
    branch_highlight,
    branch_metadata,
    branch_path,
    plan_branch,
    sibling_branches,
)
from convograph.graph.context import resolve_context
from convograph.graph.cycles import is_acyclic, would_create_cycle
from convograph.graph.layout import BRANCH_LAYOUT, BranchLayoutConfig, branch_position
from convograph.graph.node_kind import classify_node

__all__ = [
    "BranchPlan",
    "branch_children",
    "branch_highlight",
    "branch_metadata",
    "branch_path",
    "plan_branch",
    "sibling_branches",
    "resolve_context",
    "is_acyclic",
    "would_create_cycle",
    "BRANCH_LAYOUT",
    "BranchLayoutConfig",
    "branch_position",
    "classify_node",
]
