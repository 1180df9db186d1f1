"""Project snapshot model used for persistence and export.

A snapshot carries the flat node/edge collections verbatim, so hydrating it
restores branch fields exactly and branch queries behave the same after a
reload.
"""

from typing import Literal

from pydantic import BaseModel, Field

from convograph.models.graph import Edge, Node
from convograph.models.history import HistoryState
from convograph.utils.identifiers import now_ms


class Viewport(BaseModel):
    """Canvas pan/zoom state."""

    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class ProjectMetadata(BaseModel):
    """Listing information for a stored project."""

    title: str = "Untitled Project"
    updated_at: int = Field(default_factory=now_ms)


class ProjectSettings(BaseModel):
    """Per-project settings saved alongside the graph."""

    default_model: str = "gpt-4o"
    language: Literal["zh", "en"] = "en"


class GraphPayload(BaseModel):
    """The graph portion of a snapshot."""

    model_config = {"extra": "forbid"}

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    viewport: Viewport = Field(default_factory=Viewport)


class ProjectSnapshot(BaseModel):
    """Everything needed to restore a project."""

    model_config = {"extra": "forbid"}

    id: str
    version: int = 1
    metadata: ProjectMetadata = Field(default_factory=ProjectMetadata)
    graph: GraphPayload = Field(default_factory=GraphPayload)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    history: HistoryState | None = None


class ProjectSummary(BaseModel):
    """Lightweight row returned by project listings."""

    id: str
    title: str
    updated_at: int
    node_count: int = 0
