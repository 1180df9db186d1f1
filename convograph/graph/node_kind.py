"""Derive how a node should present itself from its data and connections."""

from collections.abc import Iterable

from convograph.models.graph import Edge, MessageRole, NodeData, NodeKind


def classify_node(node_id: str, data: NodeData, edges: Iterable[Edge]) -> NodeKind:
    """Classify a node as input, response or hybrid.

    - input: nothing downstream and no assistant reply yet
    - response: fed from upstream, has an assistant reply and no pending prompt
    - hybrid: everything else
    """
    has_downstream = False
    has_upstream = False
    for edge in edges:
        if edge.source == node_id:
            has_downstream = True
        if edge.target == node_id:
            has_upstream = True

    has_prompt = bool(data.prompt.strip())
    has_reply = any(m.role == MessageRole.assistant for m in data.messages)

    if not has_downstream and not has_reply:
        return NodeKind.input
    if has_upstream and has_reply and not has_prompt:
        return NodeKind.response
    return NodeKind.hybrid
