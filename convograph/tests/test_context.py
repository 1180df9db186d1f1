"""Tests for upstream context resolution."""

from convograph.graph.context import resolve_context
from convograph.models.graph import (
    Edge,
    Message,
    MessageRole,
    Node,
    NodeData,
    NodeStatus,
)


def _node(node_id: str, *messages: tuple[str, str, int], status=NodeStatus.idle) -> Node:
    return Node(
        id=node_id,
        data=NodeData(
            label=node_id,
            status=status,
            messages=[
                Message(id=f"{node_id}-{i}", role=MessageRole(role), content=content, created_at=ts)
                for i, (role, content, ts) in enumerate(messages)
            ],
        ),
    )


def _edge(source: str, target: str) -> Edge:
    return Edge(id=f"{source}->{target}", source=source, target=target)


def _assert_topological(order: list[str], edges: list[Edge]) -> None:
    position = {node_id: i for i, node_id in enumerate(order)}
    for edge in edges:
        if edge.source in position and edge.target in position:
            assert position[edge.source] < position[edge.target]


class TestResolveScenarios:
    """The three reference scenarios."""

    def test_chain(self):
        """A -> B -> C resolves A then B with no errors."""
        nodes = [
            _node("A", ("user", "first", 1000)),
            _node("B", ("assistant", "second", 2000)),
            _node("C", ("user", "third", 3000)),
        ]
        edges = [_edge("A", "B"), _edge("B", "C")]

        context = resolve_context("C", nodes, edges)

        assert context.execution_order == ["A", "B"]
        assert [m.content for m in context.messages] == ["first", "second"]
        assert [n.id for n in context.upstream_nodes] == ["A", "B"]
        assert context.has_errors is False
        assert context.is_complete is True

    def test_duplicate_messages_across_parents(self):
        """An identical (role, content, created_at) message is kept once."""
        nodes = [
            _node("A", ("user", "Hello", 1000)),
            _node("B", ("user", "Hello", 1000), ("user", "World", 3000)),
            _node("C"),
        ]
        edges = [_edge("A", "C"), _edge("B", "C")]

        context = resolve_context("C", nodes, edges)

        assert [m.content for m in context.messages] == ["Hello", "World"]

    def test_error_ancestor(self):
        """An errored ancestor is reported but does not raise."""
        nodes = [
            _node("A", status=NodeStatus.error),
            _node("B", status=NodeStatus.success),
            _node("C"),
        ]
        edges = [_edge("A", "C"), _edge("B", "C")]

        context = resolve_context("C", nodes, edges)

        assert context.has_errors is True
        assert context.error_nodes == ["A"]
        assert context.is_complete is False


class TestResolveProperties:
    """Properties that hold for any graph."""

    def _diamond(self):
        nodes = [
            _node("root", ("user", "q", 1000)),
            _node("left", ("assistant", "l", 3000)),
            _node("right", ("assistant", "r", 2000)),
            _node("join", ("user", "j", 4000)),
            _node("target"),
        ]
        edges = [
            _edge("root", "left"),
            _edge("root", "right"),
            _edge("left", "join"),
            _edge("right", "join"),
            _edge("join", "target"),
        ]
        return nodes, edges

    def test_execution_order_is_topological(self):
        nodes, edges = self._diamond()
        context = resolve_context("target", nodes, edges)

        assert sorted(context.execution_order) == ["join", "left", "right", "root"]
        _assert_topological(context.execution_order, edges)

    def test_each_ancestor_appears_once(self):
        """Multiple paths to the same ancestor do not duplicate it."""
        nodes, edges = self._diamond()
        context = resolve_context("target", nodes, edges)

        assert len(context.execution_order) == len(set(context.execution_order))
        assert context.execution_order.count("root") == 1

    def test_messages_sorted_by_timestamp(self):
        """Presentation follows timestamps, not topological position."""
        nodes, edges = self._diamond()
        context = resolve_context("target", nodes, edges)

        timestamps = [m.created_at for m in context.messages]
        assert timestamps == sorted(timestamps)
        assert [m.content for m in context.messages] == ["q", "r", "l", "j"]

    def test_idempotent(self):
        nodes, edges = self._diamond()
        first = resolve_context("target", nodes, edges)
        second = resolve_context("target", nodes, edges)

        assert first.messages == second.messages
        assert first.has_errors == second.has_errors
        assert first.is_complete == second.is_complete

    def test_no_incoming_edges(self):
        nodes = [_node("solo", ("user", "hi", 1000))]
        context = resolve_context("solo", nodes, [])

        assert context.is_complete is True
        assert context.upstream_nodes == []
        assert context.messages == []
        assert context.execution_order == []

    def test_target_messages_are_not_included(self):
        nodes = [_node("A", ("user", "a", 1000)), _node("B", ("user", "b", 2000))]
        context = resolve_context("B", nodes, [_edge("A", "B")])

        assert [m.content for m in context.messages] == ["a"]

    def test_missing_ancestor_counts_against_completeness(self):
        """A dangling edge source is skipped but marks the context incomplete."""
        nodes = [_node("A", ("user", "a", 1000)), _node("C")]
        edges = [_edge("A", "C"), _edge("ghost", "C")]

        context = resolve_context("C", nodes, edges)

        assert [n.id for n in context.upstream_nodes] == ["A"]
        assert [m.content for m in context.messages] == ["a"]
        assert context.has_errors is False
        assert context.is_complete is False

    def test_running_ancestor_is_not_an_error(self):
        nodes = [_node("A", ("user", "a", 1000), status=NodeStatus.running), _node("B")]
        context = resolve_context("B", nodes, [_edge("A", "B")])

        assert context.has_errors is False
        assert context.is_complete is True

    def test_messages_record_their_source_node(self):
        nodes = [_node("A", ("user", "a", 1000)), _node("B")]
        context = resolve_context("B", nodes, [_edge("A", "B")])

        assert context.messages[0].node_id == "A"

    def test_chat_messages_append_prompt(self):
        nodes = [_node("A", ("user", "hi", 1000), ("assistant", "hello", 1001)), _node("B")]
        context = resolve_context("B", nodes, [_edge("A", "B")])

        assert context.as_chat_messages("and then?") == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "and then?"},
        ]

    def test_does_not_mutate_nodes(self):
        nodes, edges = self._diamond()
        before = [node.model_dump() for node in nodes]
        resolve_context("target", nodes, edges)
        assert [node.model_dump() for node in nodes] == before
