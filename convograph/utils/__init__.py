"""Utility functions for convograph."""

from convograph.utils.identifiers import (
    generate_branch_id,
    generate_edge_id,
    generate_message_id,
    generate_node_id,
    generate_project_id,
    now_ms,
)

__all__ = [
    "generate_branch_id",
    "generate_edge_id",
    "generate_message_id",
    "generate_node_id",
    "generate_project_id",
    "now_ms",
]
