"""History entries for undo/redo.

Each entry is a command: it knows how to re-apply and revert its own effect
on the graph through a ``GraphMutator``. The history automaton only moves
pointers and calls these two methods.
"""

from typing import Annotated, Literal, Protocol

from pydantic import BaseModel, Field

from convograph.models.graph import Edge, Node
from convograph.utils.identifiers import now_ms


class GraphMutator(Protocol):
    """The slice of the graph store that history entries are allowed to touch."""

    def restore(self, nodes: list[Node], edges: list[Edge]) -> None:
        """Re-insert nodes and edges verbatim (same ids, same payload)."""
        ...

    def discard(self, node_ids: set[str], edge_ids: set[str]) -> None:
        """Remove the given ids, ignoring ids that are already gone."""
        ...


class BaselineEntry(BaseModel):
    """Inert checkpoint marking the state a graph was created or loaded in."""

    model_config = {"extra": "forbid"}

    kind: Literal["baseline"] = "baseline"
    timestamp: int = Field(default_factory=now_ms)

    def apply(self, graph: GraphMutator) -> None:
        pass

    def revert(self, graph: GraphMutator) -> None:
        pass


class BranchDeletion(BaseModel):
    """A cascading deletion of a node and everything downstream of it."""

    model_config = {"extra": "forbid"}

    kind: Literal["branch_deletion"] = "branch_deletion"
    timestamp: int = Field(default_factory=now_ms)
    root_id: str
    deleted_nodes: list[Node]
    deleted_edges: list[Edge]

    @property
    def node_ids(self) -> set[str]:
        return {node.id for node in self.deleted_nodes}

    @property
    def edge_ids(self) -> set[str]:
        return {edge.id for edge in self.deleted_edges}

    def apply(self, graph: GraphMutator) -> None:
        """Delete the captured ids again.

        Works from the captured id set rather than re-running the cascade,
        so nodes attached to the subtree after an undo are left alone.
        """
        graph.discard(self.node_ids, self.edge_ids)

    def revert(self, graph: GraphMutator) -> None:
        """Put every captured node and edge back exactly as it was."""
        graph.restore(
            [node.model_copy(deep=True) for node in self.deleted_nodes],
            [edge.model_copy(deep=True) for edge in self.deleted_edges],
        )


HistoryEntry = Annotated[BaselineEntry | BranchDeletion, Field(discriminator="kind")]


class HistoryState(BaseModel):
    """Serializable form of the undo/redo automaton."""

    past: list[HistoryEntry] = Field(default_factory=list)
    present: HistoryEntry | None = None
    future: list[HistoryEntry] = Field(default_factory=list)
