"""convograph - branching conversation graphs for language-model prompting."""

from convograph.models.graph import (
    Edge,
    EdgeData,
    Message,
    MessageRole,
    Node,
    NodeData,
    NodeKind,
    NodeStatus,
    Position,
)
from convograph.models.context import BranchMetadata, ExecutionContext
from convograph.models.history import BranchDeletion
from convograph.models.project import ProjectSnapshot
from convograph.graph import is_acyclic, resolve_context
from convograph.history import HistoryManager
from convograph.store import ConnectRejection, ConnectResult, GraphStore
from convograph.execution import ExecutionResult, NodeRunner

__all__ = [
    # Graph models
    "Edge",
    "EdgeData",
    "Message",
    "MessageRole",
    "Node",
    "NodeData",
    "NodeKind",
    "NodeStatus",
    "Position",
    # Derived views
    "BranchMetadata",
    "ExecutionContext",
    # History and persistence
    "BranchDeletion",
    "HistoryManager",
    "ProjectSnapshot",
    # High-level APIs
    "is_acyclic",
    "resolve_context",
    "ConnectRejection",
    "ConnectResult",
    "GraphStore",
    "ExecutionResult",
    "NodeRunner",
]
