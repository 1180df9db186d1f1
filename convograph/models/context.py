"""Derived views over the graph. Never persisted, always recomputed."""

from pydantic import BaseModel, Field

from convograph.models.graph import MessageRole, Node


class ContextMessage(BaseModel):
    """A deduplicated upstream message together with the node it came from."""

    role: MessageRole
    content: str
    created_at: int
    node_id: str


class ExecutionContext(BaseModel):
    """Upstream context resolved for a target node."""

    target_id: str
    upstream_nodes: list[Node] = Field(default_factory=list)  # topological order
    messages: list[ContextMessage] = Field(default_factory=list)  # sorted by created_at
    execution_order: list[str] = Field(default_factory=list)
    has_errors: bool = False
    error_nodes: list[str] = Field(default_factory=list)
    is_complete: bool = True

    def as_chat_messages(self, prompt: str | None = None) -> list[dict[str, str]]:
        """Messages in the shape the model collaborator consumes.

        When a prompt is given it is appended as the final user turn.
        """
        messages = [
            {"role": message.role.value, "content": message.content}
            for message in self.messages
        ]
        if prompt:
            messages.append({"role": MessageRole.user.value, "content": prompt})
        return messages


class BranchMetadata(BaseModel):
    """Summary of where a branch node sits in its branch tree."""

    branch_id: str
    parent_node_id: str | None = None
    depth: int
    message_count: int
    created_at: int


class BranchHighlight(BaseModel):
    """Node and edge ids to highlight for a selected branch node."""

    node_ids: set[str] = Field(default_factory=set)
    edge_ids: set[str] = Field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.node_ids and not self.edge_ids
