"""Node, edge and message models for the conversation graph.

Payloads are explicit pydantic models rather than free-form dicts, so a
snapshot is validated once when it is hydrated and every read site can
trust the shape of the data.
"""

from enum import Enum

from pydantic import BaseModel, Field

from convograph.utils.identifiers import now_ms


class MessageRole(str, Enum):
    """Who authored a chat message."""

    user = "user"
    assistant = "assistant"
    system = "system"


class NodeStatus(str, Enum):
    """Execution status of a node's model call."""

    idle = "idle"
    running = "running"
    success = "success"
    error = "error"


class NodeKind(str, Enum):
    """How a node presents itself on the canvas."""

    input = "input"
    response = "response"
    hybrid = "hybrid"


class Message(BaseModel):
    """A single chat turn stored on a node."""

    model_config = {"extra": "forbid"}

    id: str
    role: MessageRole
    content: str
    created_at: int  # epoch milliseconds


class Position(BaseModel):
    """Canvas coordinates; layout only."""

    x: float = 0.0
    y: float = 0.0


class NodeData(BaseModel):
    """Payload of a chat node."""

    # protected_namespaces() removes field naming protections from pydantic ("model_")
    model_config = {"extra": "forbid", "protected_namespaces": ()}

    label: str = "Untitled"
    description: str | None = None
    model_id: str = "gpt-4o"
    prompt: str = ""
    messages: list[Message] = Field(default_factory=list)
    status: NodeStatus = NodeStatus.idle
    error: str | None = None
    created_at: int = Field(default_factory=now_ms)

    # per-node overrides of the project defaults
    temperature: float | None = None
    max_tokens: int | None = None

    # branch fields, only set on nodes created by branching
    branch_id: str | None = None
    parent_node_id: str | None = None
    branch_index: int | None = None
    node_type: NodeKind | None = None


class Node(BaseModel):
    """A node in the conversation graph."""

    model_config = {"extra": "forbid"}

    id: str
    type: str = "chat"
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)


class EdgeData(BaseModel):
    """Payload of an edge."""

    model_config = {"extra": "forbid"}

    created_at: int = Field(default_factory=now_ms)
    branch_index: int | None = None
    is_branch_edge: bool = False


class Edge(BaseModel):
    """A directed edge: context flows from source into target."""

    model_config = {"extra": "forbid"}

    id: str
    source: str
    target: str
    data: EdgeData = Field(default_factory=EdgeData)
