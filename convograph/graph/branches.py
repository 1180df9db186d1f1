"""Branch tree overlaid on the conversation DAG.

Branch nodes carry ``branch_id``, ``branch_index`` and ``parent_node_id``;
the edge from the parent is flagged ``is_branch_edge``. Everything here is
derived from those fields plus the edge list, so it can be recomputed at any
time and behaves the same after a snapshot reload.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from convograph.graph.layout import branch_position
from convograph.models.context import BranchHighlight, BranchMetadata
from convograph.models.graph import Edge, Node, Position
from convograph.utils.identifiers import generate_branch_id

NodeIndex = Mapping[str, Node]


@dataclass(frozen=True)
class BranchPlan:
    """Branch fields and placement for a new continuation of ``parent_node_id``."""

    parent_node_id: str
    branch_id: str
    branch_index: int
    position: Position
    inherited: bool


def _index(nodes: NodeIndex | Iterable[Node]) -> NodeIndex:
    if isinstance(nodes, Mapping):
        return nodes
    return {node.id: node for node in nodes}


def _link_index(edges: Iterable[Edge]) -> dict[tuple[str, str], Edge]:
    """Map ``(source, target)`` to its edge, preferring one flagged as a branch edge."""
    links: dict[tuple[str, str], Edge] = {}
    for edge in edges:
        key = (edge.source, edge.target)
        current = links.get(key)
        if current is None or (edge.data.is_branch_edge and not current.data.is_branch_edge):
            links[key] = edge
    return links


def branch_children(source_id: str, edges: Iterable[Edge]) -> list[Edge]:
    """Branch edges leaving ``source_id``, in insertion order."""
    return [
        edge for edge in edges
        if edge.source == source_id and edge.data.is_branch_edge
    ]


def plan_branch(
    source: Node,
    edges: Iterable[Edge],
    nodes: NodeIndex | Iterable[Node] | None = None,
) -> BranchPlan:
    """Work out branch fields and position for a continuation of ``source``.

    A source that already belongs to a branch passes its ``branch_id`` and
    ``branch_index`` on. Otherwise a fresh ``branch_id`` is minted and the
    index is the number of branch edges already leaving the source, so
    siblings are numbered 0, 1, 2, ...

    The horizontal lane starts at that count. When ``nodes`` is given, lanes
    held by a surviving branch child are skipped, so a fork made after a
    sibling was deleted does not land on another sibling.
    """
    children = branch_children(source.id, edges)
    existing = len(children)

    taken: set[tuple[float, float]] = set()
    if nodes is not None:
        index = _index(nodes)
        for edge in children:
            child = index.get(edge.target)
            if child is not None:
                taken.add((child.position.x, child.position.y))

    lane = existing
    position = branch_position(source.position, lane=lane)
    while (position.x, position.y) in taken:
        lane += 1
        position = branch_position(source.position, lane=lane)

    if source.data.branch_id is not None:
        branch_index = source.data.branch_index
        return BranchPlan(
            parent_node_id=source.id,
            branch_id=source.data.branch_id,
            branch_index=branch_index if branch_index is not None else existing,
            position=position,
            inherited=True,
        )

    return BranchPlan(
        parent_node_id=source.id,
        branch_id=generate_branch_id(),
        branch_index=existing,
        position=position,
        inherited=False,
    )


def _walk_to_root(
    node_id: str,
    index: NodeIndex,
    links: Mapping[tuple[str, str], Edge],
) -> list[Node]:
    path: list[Node] = []
    visited: set[str] = set()

    current = index.get(node_id)
    while current is not None and current.id not in visited:
        visited.add(current.id)
        path.append(current)

        parent_id = current.data.parent_node_id
        if parent_id is None or (parent_id, current.id) not in links:
            break
        current = index.get(parent_id)

    path.reverse()
    return path


def branch_path(
    node_id: str,
    nodes: NodeIndex | Iterable[Node],
    edges: Iterable[Edge],
) -> list[Node]:
    """Nodes from the branch root down to ``node_id`` (inclusive), root first.

    Follows only the edge designated by each node's ``parent_node_id``, not
    every incoming edge. The walk stops at a node without a parent, at a
    missing parent or link, or on revisiting a node in corrupted data.
    Edges are indexed by endpoints once, so each step is a lookup.
    """
    return _walk_to_root(node_id, _index(nodes), _link_index(edges))


def sibling_branches(
    node_id: str,
    nodes: NodeIndex | Iterable[Node],
    edges: Iterable[Edge],
) -> list[Node]:
    """Other branch continuations of this node's parent."""
    index = _index(nodes)
    node = index.get(node_id)
    if node is None or node.data.parent_node_id is None:
        return []

    siblings: list[Node] = []
    seen: set[str] = {node_id}
    for edge in branch_children(node.data.parent_node_id, edges):
        if edge.target in seen:
            continue
        seen.add(edge.target)
        sibling = index.get(edge.target)
        if sibling is not None:
            siblings.append(sibling)
    return siblings


def branch_metadata(
    node_id: str,
    nodes: NodeIndex | Iterable[Node],
    edges: Iterable[Edge],
) -> BranchMetadata | None:
    """Depth and message count of a branch node, or None for non-branch nodes."""
    index = _index(nodes)
    node = index.get(node_id)
    if node is None or node.data.branch_id is None:
        return None

    path = branch_path(node_id, index, edges)
    return BranchMetadata(
        branch_id=node.data.branch_id,
        parent_node_id=node.data.parent_node_id,
        depth=len(path) - 1,
        message_count=sum(len(step.data.messages) for step in path),
        created_at=node.data.created_at,
    )


def branch_highlight(
    node_id: str,
    nodes: NodeIndex | Iterable[Node],
    edges: Iterable[Edge],
) -> BranchHighlight:
    """Node and edge ids along the branch path of ``node_id``."""
    links = _link_index(edges)
    path = _walk_to_root(node_id, _index(nodes), links)

    highlight = BranchHighlight(node_ids={node.id for node in path})
    for parent, child in zip(path, path[1:]):
        highlight.edge_ids.add(links[(parent.id, child.id)].id)
    return highlight
