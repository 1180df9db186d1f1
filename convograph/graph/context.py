"""Upstream context resolution.

For a target node, collect every strict ancestor, order them topologically,
and merge their messages into one deduplicated, time-ordered conversation.
Topological order decides which copy of a duplicated message wins; the
timestamp decides where it is presented, because sibling branches can be
authored out of step with each other.
"""

import logging
from collections import defaultdict, deque
from collections.abc import Iterable

from convograph.models.context import ContextMessage, ExecutionContext
from convograph.models.graph import Edge, Node, NodeStatus

logger = logging.getLogger(__name__)


def _collect_ancestors(target_id: str, incoming: dict[str, list[str]]) -> list[str]:
    """Backward BFS from the target; each ancestor appears once, in discovery order."""
    seen: set[str] = {target_id}
    ancestors: list[str] = []
    queue = deque(incoming.get(target_id, ()))

    while queue:
        node_id = queue.popleft()
        if node_id in seen:
            continue
        seen.add(node_id)
        ancestors.append(node_id)
        queue.extend(incoming.get(node_id, ()))

    return ancestors


def _topological_order(ancestors: list[str], edges: list[Edge]) -> list[str]:
    """Kahn's algorithm restricted to the ancestor-induced subgraph.

    Ties between simultaneously eligible nodes are broken by discovery order.
    Nodes caught in a cycle never reach in-degree zero and are left out.
    """
    members = set(ancestors)
    in_degree = {node_id: 0 for node_id in ancestors}
    successors: dict[str, list[str]] = defaultdict(list)

    for edge in edges:
        if edge.source in members and edge.target in members:
            successors[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    ready = deque(node_id for node_id in ancestors if in_degree[node_id] == 0)
    order: list[str] = []

    while ready:
        node_id = ready.popleft()
        order.append(node_id)
        for successor in successors[node_id]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                ready.append(successor)

    return order


def resolve_context(
    target_id: str,
    nodes: Iterable[Node],
    edges: Iterable[Edge],
) -> ExecutionContext:
    """Resolve the conversation context feeding ``target_id``.

    Pure and read-only: inputs are never mutated, so this is safe to call
    from any read path, including while nodes are running.
    """
    nodes_by_id = {node.id: node for node in nodes}
    edges = list(edges)

    incoming: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        incoming[edge.target].append(edge.source)

    ancestors = _collect_ancestors(target_id, incoming)
    if not ancestors:
        return ExecutionContext(target_id=target_id)

    execution_order = _topological_order(ancestors, edges)

    upstream_nodes: list[Node] = []
    error_nodes: list[str] = []
    harvested: dict[tuple[str, str, int], ContextMessage] = {}

    for node_id in execution_order:
        node = nodes_by_id.get(node_id)
        if node is None:
            # dangling edge source: skipped here, counted against completeness
            continue
        upstream_nodes.append(node)
        if node.data.status == NodeStatus.error:
            error_nodes.append(node_id)

        for message in node.data.messages:
            key = (message.role.value, message.content, message.created_at)
            if key not in harvested:
                harvested[key] = ContextMessage(
                    role=message.role,
                    content=message.content,
                    created_at=message.created_at,
                    node_id=node_id,
                )

    messages = sorted(harvested.values(), key=lambda m: m.created_at)
    has_errors = bool(error_nodes)
    is_complete = len(upstream_nodes) == len(ancestors) and not has_errors

    if not is_complete:
        logger.debug(
            "context for %s incomplete: %d/%d ancestors resolved, errors=%s",
            target_id,
            len(upstream_nodes),
            len(ancestors),
            error_nodes,
        )

    return ExecutionContext(
        target_id=target_id,
        upstream_nodes=upstream_nodes,
        messages=messages,
        execution_order=execution_order,
        has_errors=has_errors,
        error_nodes=error_nodes,
        is_complete=is_complete,
    )
