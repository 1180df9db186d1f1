"""Owned graph state and the only place that writes it.

``GraphStore`` holds the flat node and edge collections plus selection,
branch highlight, viewport and undo/redo history. Readers get tuples and
derived views; every write goes through a method here and completes in a
single call, so any read after a mutation sees the fully updated graph.

Node payloads are replaced, never edited in place, so a node object handed
out earlier keeps describing the state it was read in.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

from convograph.errors import DuplicateIdError, EdgeNotFoundError, GraphError, NodeNotFoundError
from convograph.graph.branches import (
    branch_highlight,
    branch_metadata,
    branch_path,
    plan_branch,
    sibling_branches,
)
from convograph.graph.context import resolve_context
from convograph.graph.cycles import is_acyclic, would_create_cycle
from convograph.graph.node_kind import classify_node
from convograph.history import HistoryManager
from convograph.models.context import BranchHighlight, BranchMetadata, ExecutionContext
from convograph.models.graph import (
    Edge,
    EdgeData,
    Message,
    Node,
    NodeData,
    NodeKind,
    NodeStatus,
    Position,
)
from convograph.models.history import BranchDeletion, HistoryState
from convograph.models.project import (
    GraphPayload,
    ProjectMetadata,
    ProjectSettings,
    ProjectSnapshot,
    Viewport,
)
from convograph.utils.identifiers import generate_edge_id, generate_node_id, now_ms

logger = logging.getLogger(__name__)


class ConnectRejection(str, Enum):
    """Why a connection was refused."""

    missing_node = "missing_node"
    self_loop = "self_loop"
    duplicate = "duplicate"
    cycle = "cycle"


REJECTION_MESSAGES = {
    ConnectRejection.missing_node: "Both ends of a connection must exist.",
    ConnectRejection.self_loop: "Cannot create a connection to the same node.",
    ConnectRejection.duplicate: "These nodes are already connected.",
    ConnectRejection.cycle: "This connection would create a cycle. Choose a different target.",
}


@dataclass(frozen=True)
class ConnectResult:
    """Outcome of an edge-creating mutation. A rejection changes nothing."""

    edge: Edge | None = None
    reason: ConnectRejection | None = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> str | None:
        return REJECTION_MESSAGES[self.reason] if self.reason else None


class InvalidSnapshotError(GraphError, ValueError):
    """Raised when a snapshot would put the store in an invalid state."""


def _index_graph(nodes: list[Node], edges: list[Edge]) -> tuple[dict[str, Node], dict[str, Edge]]:
    """Key nodes and edges by id, rejecting duplicate ids and cycles."""
    node_index: dict[str, Node] = {}
    edge_index: dict[str, Edge] = {}
    for node in nodes:
        if node.id in node_index:
            raise InvalidSnapshotError(f"Duplicate node id in snapshot: {node.id}")
        node_index[node.id] = node
    for edge in edges:
        if edge.id in edge_index:
            raise InvalidSnapshotError(f"Duplicate edge id in snapshot: {edge.id}")
        edge_index[edge.id] = edge
    if not is_acyclic(node_index, edge_index.values()):
        raise InvalidSnapshotError("Snapshot edges contain a cycle")
    return node_index, edge_index


class GraphStore:
    """Single-writer owner of a conversation graph."""

    def __init__(
        self,
        nodes: list[Node] | None = None,
        edges: list[Edge] | None = None,
        viewport: Viewport | None = None,
        history: HistoryState | None = None,
    ) -> None:
        self.viewport = viewport or Viewport()
        self.history = HistoryManager(history)
        self.selected_node_id: str | None = None
        self.highlight = BranchHighlight()
        self._nodes, self._edges = _index_graph(nodes or [], edges or [])

    def __repr__(self) -> str:
        return f"GraphStore(nodes={len(self._nodes)}, edges={len(self._edges)})"

    # --- Read surface ---

    @property
    def nodes(self) -> tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> tuple[Edge, ...]:
        return tuple(self._edges.values())

    @property
    def selected_node(self) -> Node | None:
        if self.selected_node_id is None:
            return None
        return self._nodes.get(self.selected_node_id)

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Edge | None:
        return self._edges.get(edge_id)

    def require_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def incoming_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self._edges.values() if edge.target == node_id]

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        return [edge for edge in self._edges.values() if edge.source == node_id]

    def upstream_nodes(self, node_id: str) -> list[Node]:
        """Direct parents of a node."""
        sources = {edge.source for edge in self.incoming_edges(node_id)}
        return [node for node in self._nodes.values() if node.id in sources]

    def downstream_nodes(self, node_id: str) -> list[Node]:
        """Direct children of a node."""
        targets = {edge.target for edge in self.outgoing_edges(node_id)}
        return [node for node in self._nodes.values() if node.id in targets]

    def root_nodes(self) -> list[Node]:
        """Nodes without incoming edges."""
        targets = {edge.target for edge in self._edges.values()}
        return [node for node in self._nodes.values() if node.id not in targets]

    def node_kind(self, node_id: str) -> NodeKind:
        node = self.require_node(node_id)
        return classify_node(node_id, node.data, self._edges.values())

    # --- Derived graph views ---

    def resolve_context(self, node_id: str) -> ExecutionContext:
        return resolve_context(node_id, self._nodes.values(), self._edges.values())

    def branch_path(self, node_id: str) -> list[Node]:
        return branch_path(node_id, self._nodes, self._edges.values())

    def sibling_branches(self, node_id: str) -> list[Node]:
        return sibling_branches(node_id, self._nodes, self._edges.values())

    def branch_metadata(self, node_id: str) -> BranchMetadata | None:
        return branch_metadata(node_id, self._nodes, self._edges.values())

    def branch_highlight(self, node_id: str) -> BranchHighlight:
        return branch_highlight(node_id, self._nodes, self._edges.values())

    # --- Node mutations ---

    def add_node(self, node: Node) -> Node:
        if node.id in self._nodes:
            raise DuplicateIdError(f"Node already exists: {node.id}")
        self._nodes[node.id] = node
        logger.debug("added node %s", node.id)
        return node

    def create_node(
        self,
        position: Position | None = None,
        node_id: str | None = None,
        **data: Any,
    ) -> Node:
        """Build a chat node from keyword payload fields and add it."""
        node = Node(
            id=node_id or generate_node_id(),
            position=position or Position(),
            data=NodeData(**data),
        )
        return self.add_node(node)

    def update_node(self, node_id: str, **updates: Any) -> Node:
        """Merge ``updates`` into the node payload; the result is re-validated."""
        node = self.require_node(node_id)
        merged = node.data.model_dump()
        merged.update(updates)
        updated = node.model_copy(update={"data": NodeData.model_validate(merged)})
        self._nodes[node_id] = updated
        return updated

    def move_node(self, node_id: str, position: Position) -> Node:
        node = self.require_node(node_id)
        updated = node.model_copy(update={"position": position})
        self._nodes[node_id] = updated
        return updated

    def set_node_status(
        self,
        node_id: str,
        status: NodeStatus,
        error: str | None = None,
    ) -> Node:
        """Atomic status transition. ``error`` is kept only for the error status."""
        return self.update_node(
            node_id,
            status=status,
            error=error if status == NodeStatus.error else None,
        )

    def add_message(self, node_id: str, message: Message) -> Node:
        node = self.require_node(node_id)
        return self.update_node(node_id, messages=[*node.data.messages, message])

    def clear_messages(self, node_id: str) -> Node:
        return self.update_node(node_id, messages=[])

    def convert_to_input(self, node_id: str) -> Node:
        """Turn a response into a node that takes a new prompt, keeping its messages."""
        node = self.require_node(node_id)
        kind = NodeKind.hybrid if node.data.messages else NodeKind.input
        return self.update_node(node_id, prompt="", node_type=kind)

    def remove_node(self, node_id: str) -> None:
        """Remove a single node together with its incident edges."""
        self.require_node(node_id)
        self.discard({node_id}, set())
        logger.debug("removed node %s", node_id)

    def duplicate_node(self, node_id: str) -> Node:
        """Copy a node beside the original. The copy is not part of any branch."""
        node = self.require_node(node_id)
        data = node.data.model_copy(
            deep=True,
            update={
                "label": f"{node.data.label} (Copy)",
                "created_at": now_ms(),
                "branch_id": None,
                "parent_node_id": None,
                "branch_index": None,
            },
        )
        copy = Node(
            id=generate_node_id(),
            type=node.type,
            position=Position(x=node.position.x + 200, y=node.position.y),
            data=data,
        )
        return self.add_node(copy)

    # --- Edge mutations ---

    def _check_connection(self, source: str, target: str) -> ConnectRejection | None:
        if source not in self._nodes or target not in self._nodes:
            return ConnectRejection.missing_node
        if source == target:
            return ConnectRejection.self_loop
        if any(e.source == source and e.target == target for e in self._edges.values()):
            return ConnectRejection.duplicate
        if would_create_cycle(self._nodes, self._edges.values(), source, target):
            return ConnectRejection.cycle
        return None

    def add_edge(self, edge: Edge) -> ConnectResult:
        """Add a fully built edge if it keeps the graph valid and acyclic."""
        if edge.id in self._edges:
            raise DuplicateIdError(f"Edge already exists: {edge.id}")

        reason = self._check_connection(edge.source, edge.target)
        if reason is not None:
            logger.info("rejected edge %s -> %s: %s", edge.source, edge.target, reason.value)
            return ConnectResult(reason=reason)

        self._edges[edge.id] = edge
        logger.debug("added edge %s (%s -> %s)", edge.id, edge.source, edge.target)
        return ConnectResult(edge=edge)

    def connect(
        self,
        source: str,
        target: str,
        edge_id: str | None = None,
        **data: Any,
    ) -> ConnectResult:
        """Connect two nodes; rejected connections leave the graph untouched."""
        edge = Edge(
            id=edge_id or generate_edge_id(source, target),
            source=source,
            target=target,
            data=EdgeData(**data),
        )
        return self.add_edge(edge)

    def remove_edge(self, edge_id: str) -> None:
        if edge_id not in self._edges:
            raise EdgeNotFoundError(edge_id)
        del self._edges[edge_id]
        self._refresh_highlight()

    # --- Branching ---

    def create_branch(
        self,
        source_id: str,
        label: str | None = None,
        prompt: str = "",
    ) -> Node:
        """Fork a new continuation from ``source_id``.

        The child inherits the model of its source, gets branch fields from
        ``plan_branch`` and is linked by a branch edge.
        """
        source = self.require_node(source_id)
        plan = plan_branch(source, self._edges.values(), self._nodes)

        child = Node(
            id=generate_node_id(),
            type=source.type,
            position=plan.position,
            data=NodeData(
                label=label or f"Branch {plan.branch_index + 1}",
                model_id=source.data.model_id,
                prompt=prompt,
                branch_id=plan.branch_id,
                parent_node_id=source_id,
                branch_index=plan.branch_index,
                node_type=NodeKind.input,
            ),
        )
        self.add_node(child)

        result = self.connect(
            source_id,
            child.id,
            branch_index=plan.branch_index,
            is_branch_edge=True,
        )
        if not result.accepted:
            # a brand-new target cannot close a cycle; keep the graph consistent anyway
            del self._nodes[child.id]
            raise GraphError(f"Could not attach branch to {source_id}: {result.reason.value}")

        logger.debug(
            "branched %s from %s (branch=%s index=%d inherited=%s)",
            child.id,
            source_id,
            plan.branch_id,
            plan.branch_index,
            plan.inherited,
        )
        return child

    def _downstream_closure(self, node_id: str) -> tuple[list[str], list[str]]:
        """Forward BFS over every outgoing edge; returns node ids and incident edge ids."""
        outgoing: dict[str, list[str]] = {}
        for edge in self._edges.values():
            outgoing.setdefault(edge.source, []).append(edge.target)

        visited = {node_id}
        order = [node_id]
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for target in outgoing.get(current, ()):
                if target not in visited:
                    visited.add(target)
                    order.append(target)
                    queue.append(target)

        edge_ids = [
            edge.id for edge in self._edges.values()
            if edge.source in visited or edge.target in visited
        ]
        return order, edge_ids

    def delete_branch_cascade(self, node_id: str) -> BranchDeletion | None:
        """Delete a node and everything reachable downstream of it, undoably.

        Returns the recorded history entry, or None if the node is unknown.
        """
        if node_id not in self._nodes:
            return None

        node_ids, edge_ids = self._downstream_closure(node_id)
        entry = BranchDeletion(
            root_id=node_id,
            deleted_nodes=[
                self._nodes[nid].model_copy(deep=True)
                for nid in node_ids
                if nid in self._nodes
            ],
            deleted_edges=[self._edges[eid].model_copy(deep=True) for eid in edge_ids],
        )
        self.history.record(entry)
        entry.apply(self)

        logger.info(
            "cascade deleted %s: %d nodes, %d edges",
            node_id,
            len(entry.deleted_nodes),
            len(entry.deleted_edges),
        )
        return entry

    # --- History ---

    def undo(self) -> None:
        self.history.undo(self)
        self._refresh_highlight()

    def redo(self) -> None:
        self.history.redo(self)
        self._refresh_highlight()

    def restore(self, nodes: list[Node], edges: list[Edge]) -> None:
        for node in nodes:
            self._nodes[node.id] = node
        for edge in edges:
            self._edges[edge.id] = edge

    def discard(self, node_ids: set[str], edge_ids: set[str]) -> None:
        for node_id in node_ids:
            self._nodes.pop(node_id, None)
        for edge_id in list(self._edges):
            edge = self._edges[edge_id]
            if edge_id in edge_ids or edge.source in node_ids or edge.target in node_ids:
                del self._edges[edge_id]

        if self.selected_node_id in node_ids:
            self.select_node(None)
        else:
            self._refresh_highlight()

    # --- Selection ---

    def select_node(self, node_id: str | None) -> None:
        """Select a node (or clear with None) and recompute the branch highlight."""
        if node_id is not None and node_id not in self._nodes:
            raise NodeNotFoundError(node_id)
        self.selected_node_id = node_id
        self._refresh_highlight()

    def _refresh_highlight(self) -> None:
        node = self.selected_node
        if node is None or node.data.branch_id is None:
            self.highlight = BranchHighlight()
        else:
            self.highlight = self.branch_highlight(node.id)

    # --- Persistence ---

    def hydrate(self, snapshot: ProjectSnapshot) -> None:
        """Replace the whole graph with the contents of a snapshot.

        The snapshot is validated before anything is assigned, so a rejected
        snapshot leaves the store exactly as it was.
        """
        nodes, edges = _index_graph(
            [node.model_copy(deep=True) for node in snapshot.graph.nodes],
            [edge.model_copy(deep=True) for edge in snapshot.graph.edges],
        )
        history = HistoryManager(snapshot.history)

        self._nodes = nodes
        self._edges = edges
        self.viewport = snapshot.graph.viewport.model_copy()
        self.history = history
        self.selected_node_id = None
        self.highlight = BranchHighlight()
        logger.info(
            "hydrated project %s (%d nodes, %d edges)",
            snapshot.id,
            len(self._nodes),
            len(self._edges),
        )

    @classmethod
    def from_snapshot(cls, snapshot: ProjectSnapshot) -> GraphStore:
        store = cls()
        store.hydrate(snapshot)
        return store

    def snapshot(
        self,
        project_id: str,
        title: str = "Untitled Project",
        settings: ProjectSettings | None = None,
        version: int = 1,
    ) -> ProjectSnapshot:
        """Capture nodes, edges, viewport and history verbatim."""
        return ProjectSnapshot(
            id=project_id,
            version=version,
            metadata=ProjectMetadata(title=title, updated_at=now_ms()),
            graph=GraphPayload(
                nodes=[node.model_copy(deep=True) for node in self._nodes.values()],
                edges=[edge.model_copy(deep=True) for edge in self._edges.values()],
                viewport=self.viewport.model_copy(),
            ),
            settings=settings or ProjectSettings(),
            history=self.history.to_state(),
        )
