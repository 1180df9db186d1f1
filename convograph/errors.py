"""Exceptions raised by the graph mutation surface."""


class GraphError(Exception):
    """Base class for graph mutation errors."""


class NodeNotFoundError(GraphError, KeyError):
    """Raised when a mutation targets a node id that is not in the store."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"


class EdgeNotFoundError(GraphError, KeyError):
    """Raised when a mutation targets an edge id that is not in the store."""

    def __init__(self, edge_id: str) -> None:
        super().__init__(edge_id)
        self.edge_id = edge_id

    def __str__(self) -> str:
        return f"Edge not found: {self.edge_id}"


class DuplicateIdError(GraphError, ValueError):
    """Raised when adding a node or edge whose id is already taken."""
