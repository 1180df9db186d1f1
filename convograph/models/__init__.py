"""Core data models for convograph."""

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
from convograph.models.context import (
    BranchHighlight,
    BranchMetadata,
    ContextMessage,
    ExecutionContext,
)
from convograph.models.history import (
    BaselineEntry,
    BranchDeletion,
    GraphMutator,
    HistoryEntry,
    HistoryState,
)
from convograph.models.project import (
    GraphPayload,
    ProjectMetadata,
    ProjectSettings,
    ProjectSnapshot,
    ProjectSummary,
    Viewport,
)

__all__ = [
    # Graph
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
    "BranchHighlight",
    "BranchMetadata",
    "ContextMessage",
    "ExecutionContext",
    # History
    "BaselineEntry",
    "BranchDeletion",
    "GraphMutator",
    "HistoryEntry",
    "HistoryState",
    # Projects
    "GraphPayload",
    "ProjectMetadata",
    "ProjectSettings",
    "ProjectSnapshot",
    "ProjectSummary",
    "Viewport",
]
