"""Acyclicity check that gates every edge-creating mutation."""

from collections import defaultdict
from collections.abc import Iterable
from itertools import chain

from convograph.models.graph import Edge


def is_acyclic(node_ids: Iterable[str], edges: Iterable[Edge]) -> bool:
    """Return True if the directed graph formed by ``edges`` has no cycle.

    Depth-first search keeping a globally visited set and the set of nodes on
    the current path. Reaching a node that is still on the path closes a
    cycle, which also covers self loops. The walk uses an explicit stack so
    long chains cannot exhaust the recursion limit. O(V + E).

    Endpoints that appear only in ``edges`` are searched too, so a cycle
    among nodes missing from ``node_ids`` is still caught.
    """
    successors: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        successors[edge.source].append(edge.target)

    visited: set[str] = set()
    on_path: set[str] = set()

    for start in chain(node_ids, list(successors)):
        if start in visited:
            continue
        visited.add(start)
        on_path.add(start)
        stack = [(start, iter(successors.get(start, ())))]

        while stack:
            node_id, pending = stack[-1]
            for neighbor in pending:
                if neighbor in on_path:
                    return False
                if neighbor not in visited:
                    visited.add(neighbor)
                    on_path.add(neighbor)
                    stack.append((neighbor, iter(successors.get(neighbor, ()))))
                    break
            else:
                on_path.discard(node_id)
                stack.pop()

    return True


def would_create_cycle(
    node_ids: Iterable[str],
    edges: Iterable[Edge],
    source: str,
    target: str,
) -> bool:
    """Check whether adding ``source -> target`` to ``edges`` closes a cycle."""
    tentative = Edge(id="__tentative__", source=source, target=target)
    return not is_acyclic(node_ids, chain(edges, [tentative]))
