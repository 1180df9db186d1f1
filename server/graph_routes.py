"""API routes for editing a project's conversation graph and querying it."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from convograph.config import get_settings
from convograph.errors import DuplicateIdError, EdgeNotFoundError, NodeNotFoundError
from convograph.execution import ExecutionResult, NodeRunner
from convograph.llm.client import ChatClient, create_client
from convograph.llm.errors import LLMError
from convograph.models.context import BranchHighlight, BranchMetadata, ExecutionContext
from convograph.models.graph import Edge, Node, NodeKind, Position
from convograph.models.history import BranchDeletion
from convograph.store import ConnectRejection
from server.project_routes import open_project
from server.workspace import Workspace, get_workspace

router = APIRouter()


class CreateNodeRequest(BaseModel):
    """request body for adding a node."""

    position: Position | None = None
    label: str | None = None
    model_id: str | None = None
    prompt: str = ""


class UpdateNodeRequest(BaseModel):
    """partial update of a node payload; unset fields are left alone."""

    label: str | None = None
    description: str | None = None
    model_id: str | None = None
    prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    position: Position | None = None


class ConnectRequest(BaseModel):
    source: str
    target: str


class BranchRequest(BaseModel):
    """request body for forking a branch off a node."""

    label: str | None = None
    prompt: str = ""


class SelectRequest(BaseModel):
    node_id: str | None = None


class BranchView(BaseModel):
    """everything the canvas needs to render one node's branch."""

    node_id: str
    kind: NodeKind
    path: list[str]
    siblings: list[str]
    metadata: BranchMetadata | None = None
    highlight: BranchHighlight


class DeletionSummary(BaseModel):
    deleted_nodes: list[str]
    deleted_edges: list[str]


def get_chat_client() -> ChatClient:
    """FastAPI dependency: client for the configured default provider."""
    settings = get_settings()
    try:
        return create_client(settings.default_provider, settings)
    except LLMError as e:
        raise HTTPException(status_code=400, detail=e.user_message)


def _require(project_store, node_id: str) -> Node:
    try:
        return project_store.require_node(node_id)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# --- Nodes ---


@router.get("/projects/{project_id}/nodes")
async def list_nodes(project_id: str, workspace: Workspace = Depends(get_workspace)) -> list[Node]:
    return list(open_project(project_id, workspace).store.nodes)


@router.post("/projects/{project_id}/nodes", status_code=201)
async def create_node(
    project_id: str,
    request: CreateNodeRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Node:
    """add a node to the canvas."""
    project = open_project(project_id, workspace)
    data: dict[str, Any] = {"prompt": request.prompt}
    if request.label:
        data["label"] = request.label
    data["model_id"] = request.model_id or project.settings.default_model

    node = project.store.create_node(position=request.position, **data)
    workspace.save(project_id)
    return node


@router.patch("/projects/{project_id}/nodes/{node_id}")
async def update_node(
    project_id: str,
    node_id: str,
    request: UpdateNodeRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Node:
    """update node fields; omitted fields keep their values."""
    project = open_project(project_id, workspace)
    _require(project.store, node_id)

    updates = request.model_dump(exclude_unset=True)
    position = updates.pop("position", None)
    try:
        node = project.store.update_node(node_id, **updates) if updates else None
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if position is not None:
        node = project.store.move_node(node_id, Position(**position))

    workspace.save(project_id)
    return node or project.store.require_node(node_id)


@router.delete("/projects/{project_id}/nodes/{node_id}")
async def delete_node(
    project_id: str,
    node_id: str,
    cascade: bool = False,
    workspace: Workspace = Depends(get_workspace),
) -> DeletionSummary:
    """delete a node.

    With ``cascade=true`` every node reachable downstream goes too, and the
    deletion can be undone. A plain delete removes the node and its edges
    only and is not recorded in history.
    """
    project = open_project(project_id, workspace)
    store = project.store
    _require(store, node_id)

    if cascade:
        entry: BranchDeletion = store.delete_branch_cascade(node_id)
        summary = DeletionSummary(
            deleted_nodes=[node.id for node in entry.deleted_nodes],
            deleted_edges=[edge.id for edge in entry.deleted_edges],
        )
    else:
        edge_ids = [
            edge.id for edge in store.edges
            if edge.source == node_id or edge.target == node_id
        ]
        store.remove_node(node_id)
        summary = DeletionSummary(deleted_nodes=[node_id], deleted_edges=edge_ids)

    workspace.save(project_id)
    return summary


@router.post("/projects/{project_id}/nodes/{node_id}/duplicate", status_code=201)
async def duplicate_node(
    project_id: str,
    node_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> Node:
    project = open_project(project_id, workspace)
    _require(project.store, node_id)
    node = project.store.duplicate_node(node_id)
    workspace.save(project_id)
    return node


@router.post("/projects/{project_id}/nodes/{node_id}/convert")
async def convert_to_input(
    project_id: str,
    node_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> Node:
    """turn a response node into one that accepts a new prompt."""
    project = open_project(project_id, workspace)
    _require(project.store, node_id)
    node = project.store.convert_to_input(node_id)
    workspace.save(project_id)
    return node


@router.delete("/projects/{project_id}/nodes/{node_id}/messages")
async def clear_messages(
    project_id: str,
    node_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> Node:
    project = open_project(project_id, workspace)
    _require(project.store, node_id)
    node = project.store.clear_messages(node_id)
    workspace.save(project_id)
    return node


# --- Edges ---


@router.get("/projects/{project_id}/edges")
async def list_edges(project_id: str, workspace: Workspace = Depends(get_workspace)) -> list[Edge]:
    return list(open_project(project_id, workspace).store.edges)


@router.post("/projects/{project_id}/edges", status_code=201)
async def connect(
    project_id: str,
    request: ConnectRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Edge:
    """connect two nodes.

    Self-loops, duplicate connections and connections that would close a
    cycle are rejected with 409 and leave the graph unchanged.
    """
    project = open_project(project_id, workspace)
    try:
        result = project.store.connect(request.source, request.target)
    except DuplicateIdError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not result.accepted:
        status_code = 404 if result.reason == ConnectRejection.missing_node else 409
        raise HTTPException(
            status_code=status_code,
            detail={"reason": result.reason.value, "message": result.message},
        )

    workspace.save(project_id)
    return result.edge


@router.delete("/projects/{project_id}/edges/{edge_id}")
async def delete_edge(project_id: str, edge_id: str, workspace: Workspace = Depends(get_workspace)):
    project = open_project(project_id, workspace)
    try:
        project.store.remove_edge(edge_id)
    except EdgeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    workspace.save(project_id)
    return {"deleted": edge_id}


# --- Branches ---


@router.post("/projects/{project_id}/nodes/{node_id}/branch", status_code=201)
async def create_branch(
    project_id: str,
    node_id: str,
    request: BranchRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Node:
    """fork a new branch off a node."""
    project = open_project(project_id, workspace)
    _require(project.store, node_id)
    node = project.store.create_branch(node_id, label=request.label, prompt=request.prompt)
    workspace.save(project_id)
    return node


@router.get("/projects/{project_id}/nodes/{node_id}/branch")
async def get_branch(
    project_id: str,
    node_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> BranchView:
    """branch path, siblings, metadata and highlight for a node."""
    store = open_project(project_id, workspace).store
    _require(store, node_id)
    return BranchView(
        node_id=node_id,
        kind=store.node_kind(node_id),
        path=[node.id for node in store.branch_path(node_id)],
        siblings=[node.id for node in store.sibling_branches(node_id)],
        metadata=store.branch_metadata(node_id),
        highlight=store.branch_highlight(node_id),
    )


@router.post("/projects/{project_id}/select")
async def select_node(
    project_id: str,
    request: SelectRequest,
    workspace: Workspace = Depends(get_workspace),
) -> BranchHighlight:
    """select a node (or clear the selection) and return the branch highlight."""
    store = open_project(project_id, workspace).store
    try:
        store.select_node(request.node_id)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return store.highlight


# --- Context and execution ---


@router.get("/projects/{project_id}/nodes/{node_id}/context")
async def get_context(
    project_id: str,
    node_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> ExecutionContext:
    """resolve the upstream conversation a node would be run with."""
    store = open_project(project_id, workspace).store
    _require(store, node_id)
    return store.resolve_context(node_id)


@router.post("/projects/{project_id}/nodes/{node_id}/run")
async def run_node(
    project_id: str,
    node_id: str,
    workspace: Workspace = Depends(get_workspace),
    client: ChatClient = Depends(get_chat_client),
) -> ExecutionResult:
    """send a node's prompt with its upstream context to the model."""
    project = open_project(project_id, workspace)
    node = _require(project.store, node_id)
    if not node.data.prompt.strip():
        raise HTTPException(status_code=400, detail="Node has no prompt to run")

    runner = NodeRunner(project.store, client, workspace.settings)
    result = await runner.run_node(node_id)
    workspace.save(project_id)
    if result is None:
        raise HTTPException(status_code=409, detail=f"Node was removed while running: {node_id}")
    return result
