"""Tests for the branch tree: creation, paths, siblings, metadata and highlight."""

from convograph.graph.branches import branch_highlight, branch_path, plan_branch
from convograph.graph.layout import BRANCH_LAYOUT, branch_position
from convograph.models.graph import (
    Edge,
    EdgeData,
    Message,
    MessageRole,
    Node,
    NodeData,
    NodeKind,
    Position,
)
from convograph.store import GraphStore


def _message(content: str, ts: int) -> Message:
    return Message(id=f"m-{ts}", role=MessageRole.user, content=content, created_at=ts)


class TestCreateBranch:
    """Branch field assignment when forking."""

    def setup_method(self):
        self.store = GraphStore()
        self.root = self.store.create_node(label="root", position=Position(x=0, y=0))

    def test_fresh_branches_get_sequential_indices(self):
        first = self.store.create_branch(self.root.id)
        second = self.store.create_branch(self.root.id)
        third = self.store.create_branch(self.root.id)

        assert [n.data.branch_index for n in (first, second, third)] == [0, 1, 2]
        assert len({first.data.branch_id, second.data.branch_id, third.data.branch_id}) == 3
        assert first.data.parent_node_id == self.root.id

    def test_continuation_inherits_branch(self):
        """Branching from a branch node continues the same branch."""
        self.store.create_branch(self.root.id)
        child = self.store.create_branch(self.root.id)
        grandchild = self.store.create_branch(child.id)

        assert grandchild.data.branch_id == child.data.branch_id
        assert grandchild.data.branch_index == child.data.branch_index == 1
        assert grandchild.data.parent_node_id == child.id

    def test_branch_edge_is_flagged(self):
        child = self.store.create_branch(self.root.id)
        (edge,) = self.store.incoming_edges(child.id)

        assert edge.source == self.root.id
        assert edge.data.is_branch_edge is True
        assert edge.data.branch_index == 0

    def test_branch_node_defaults(self):
        child = self.store.create_branch(self.root.id)

        assert child.data.label == "Branch 1"
        assert child.data.model_id == self.root.data.model_id
        assert child.data.node_type == NodeKind.input

    def test_siblings_do_not_overlap(self):
        first = self.store.create_branch(self.root.id)
        second = self.store.create_branch(self.root.id)

        assert first.position != second.position
        assert second.position.x - first.position.x == BRANCH_LAYOUT.horizontal_spacing

    def test_fork_after_sibling_delete_does_not_collide(self):
        first = self.store.create_branch(self.root.id)
        second = self.store.create_branch(self.root.id)
        self.store.delete_branch_cascade(first.id)

        third = self.store.create_branch(self.root.id)

        assert third.data.branch_index == 1
        assert third.position != second.position
        positions = [n.position for n in self.store.nodes]
        assert len({(p.x, p.y) for p in positions}) == len(positions)

    def test_fork_fills_free_lane_without_stacking(self):
        first = self.store.create_branch(self.root.id)
        self.store.create_branch(self.root.id)
        self.store.create_branch(self.root.id)
        self.store.delete_branch_cascade(first.id)

        fourth = self.store.create_branch(self.root.id)

        siblings = self.store.sibling_branches(fourth.id)
        assert fourth.position not in [s.position for s in siblings]

    def test_plain_edges_do_not_count_toward_index(self):
        other = self.store.create_node(label="other")
        self.store.connect(self.root.id, other.id)

        child = self.store.create_branch(self.root.id)
        assert child.data.branch_index == 0

    def test_plan_does_not_touch_graph(self):
        plan = plan_branch(self.root, self.store.edges)

        assert plan.inherited is False
        assert plan.parent_node_id == self.root.id
        assert self.store.edges == ()


class TestBranchQueries:
    """Path, siblings, metadata and highlight on a small branch tree."""

    def setup_method(self):
        self.store = GraphStore()
        self.root = self.store.create_node(label="root", messages=[_message("q", 1000)])
        self.a = self.store.create_branch(self.root.id)
        self.b = self.store.create_branch(self.root.id)
        self.a2 = self.store.create_branch(self.a.id)
        self.store.add_message(self.a.id, _message("a", 2000))
        self.store.add_message(self.a2.id, _message("a2", 3000))

    def test_branch_path_is_root_first(self):
        path = self.store.branch_path(self.a2.id)
        assert [n.id for n in path] == [self.root.id, self.a.id, self.a2.id]

    def test_branch_path_of_root(self):
        assert [n.id for n in self.store.branch_path(self.root.id)] == [self.root.id]

    def test_branch_path_follows_parent_edge_only(self):
        """Extra incoming edges do not change the branch path."""
        self.store.connect(self.b.id, self.a2.id)
        path = self.store.branch_path(self.a2.id)
        assert [n.id for n in path] == [self.root.id, self.a.id, self.a2.id]

    def test_siblings(self):
        assert [n.id for n in self.store.sibling_branches(self.a.id)] == [self.b.id]
        assert [n.id for n in self.store.sibling_branches(self.b.id)] == [self.a.id]

    def test_no_siblings_for_root(self):
        assert self.store.sibling_branches(self.root.id) == []

    def test_metadata(self):
        meta = self.store.branch_metadata(self.a2.id)

        assert meta.branch_id == self.a.data.branch_id
        assert meta.parent_node_id == self.a.id
        assert meta.depth == 2
        assert meta.message_count == 3

    def test_metadata_for_non_branch_node(self):
        assert self.store.branch_metadata(self.root.id) is None

    def test_highlight(self):
        highlight = self.store.branch_highlight(self.a2.id)

        assert highlight.node_ids == {self.root.id, self.a.id, self.a2.id}
        assert len(highlight.edge_ids) == 2
        for edge_id in highlight.edge_ids:
            assert self.store.get_edge(edge_id).data.is_branch_edge

    def test_selection_updates_highlight(self):
        self.store.select_node(self.a2.id)
        assert self.a2.id in self.store.highlight.node_ids

        self.store.select_node(self.root.id)
        assert self.store.highlight.is_empty

        self.store.select_node(None)
        assert self.store.highlight.is_empty


class TestBranchCorruption:
    """Walks terminate on data that could only come from a corrupted snapshot."""

    def test_parent_loop_terminates(self):
        nodes = {
            "x": Node(id="x", data=NodeData(branch_id="b", parent_node_id="y")),
            "y": Node(id="y", data=NodeData(branch_id="b", parent_node_id="x")),
        }
        edges = [
            Edge(id="xy", source="x", target="y", data=EdgeData(is_branch_edge=True)),
            Edge(id="yx", source="y", target="x", data=EdgeData(is_branch_edge=True)),
        ]

        path = branch_path("x", nodes, edges)
        assert sorted(n.id for n in path) == ["x", "y"]

    def test_missing_parent_stops_walk(self):
        nodes = [Node(id="orphan", data=NodeData(branch_id="b", parent_node_id="gone"))]
        assert [n.id for n in branch_path("orphan", nodes, [])] == ["orphan"]

    def test_prefers_branch_edge_for_highlight(self):
        nodes = [
            Node(id="p"),
            Node(id="c", data=NodeData(branch_id="b", parent_node_id="p")),
        ]
        edges = [
            Edge(id="plain", source="p", target="c"),
            Edge(id="branch", source="p", target="c", data=EdgeData(is_branch_edge=True)),
        ]

        assert branch_highlight("c", nodes, edges).edge_ids == {"branch"}


class TestDeepBranch:
    """A long continuation chain."""

    def setup_method(self):
        self.nodes = [Node(id="n0", data=NodeData(branch_id="b"))]
        self.edges = []
        for i in range(1, 500):
            self.nodes.append(
                Node(id=f"n{i}", data=NodeData(branch_id="b", parent_node_id=f"n{i - 1}"))
            )
            self.edges.append(
                Edge(
                    id=f"e{i}",
                    source=f"n{i - 1}",
                    target=f"n{i}",
                    data=EdgeData(is_branch_edge=True),
                )
            )

    def test_path_reaches_root(self):
        path = branch_path("n499", self.nodes, self.edges)

        assert len(path) == 500
        assert path[0].id == "n0"

    def test_edges_are_read_once(self):
        reads = []

        def edges():
            for edge in self.edges:
                reads.append(edge.id)
                yield edge

        highlight = branch_highlight("n499", self.nodes, edges())

        assert len(reads) == len(self.edges)
        assert len(highlight.edge_ids) == 499


class TestBranchLayout:
    def test_position_is_deterministic(self):
        parent = Position(x=100, y=50)
        assert branch_position(parent, lane=2) == branch_position(parent, lane=2)
        assert branch_position(parent, lane=2) == Position(x=800, y=250)

    def test_depth_moves_down(self):
        parent = Position(x=0, y=0)
        assert branch_position(parent, lane=0, depth=2).y == 600

    def test_viewport_clamps(self):
        parent = Position(x=900, y=900)
        placed = branch_position(parent, lane=3, viewport=(1000, 1000))

        assert placed.x <= 1000 - BRANCH_LAYOUT.viewport_padding or placed.x == parent.x
        assert placed.y == 1000 - BRANCH_LAYOUT.viewport_padding
