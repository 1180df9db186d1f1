"""API routes for project lifecycle, history and export."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from convograph.models.project import ProjectSnapshot, ProjectSummary
from convograph.storage.export import EXPORT_FORMATS, export_project
from convograph.store import InvalidSnapshotError
from server.workspace import OpenProject, Workspace, get_workspace

router = APIRouter()


class CreateProjectRequest(BaseModel):
    """request body for creating a project."""

    title: str | None = None


class RenameProjectRequest(BaseModel):
    title: str


class HistoryStatus(BaseModel):
    """undo/redo availability after a history operation."""

    can_undo: bool
    can_redo: bool
    node_count: int
    edge_count: int


def open_project(project_id: str, workspace: Workspace) -> OpenProject:
    """look up an open project or raise 404."""
    project = workspace.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    return project


def _history_status(project: OpenProject) -> HistoryStatus:
    store = project.store
    return HistoryStatus(
        can_undo=store.history.can_undo,
        can_redo=store.history.can_redo,
        node_count=len(store.nodes),
        edge_count=len(store.edges),
    )


@router.get("/projects")
async def list_projects(workspace: Workspace = Depends(get_workspace)) -> list[ProjectSummary]:
    """list stored projects, most recently updated first."""
    return workspace.list_projects()


@router.post("/projects", status_code=201)
async def create_project(
    request: CreateProjectRequest,
    workspace: Workspace = Depends(get_workspace),
) -> ProjectSnapshot:
    """create an empty project."""
    project = workspace.create(request.title)
    return workspace.save(project.project_id)


@router.get("/projects/{project_id}")
async def get_project(project_id: str, workspace: Workspace = Depends(get_workspace)) -> ProjectSnapshot:
    """get the full snapshot of a project."""
    return open_project(project_id, workspace).snapshot()


@router.put("/projects/{project_id}")
async def import_project(
    project_id: str,
    snapshot: ProjectSnapshot,
    workspace: Workspace = Depends(get_workspace),
) -> ProjectSnapshot:
    """replace a project with an uploaded snapshot.

    The snapshot is rejected if its edges contain a cycle or its ids
    collide; nothing is stored in that case.
    """
    if snapshot.id != project_id:
        raise HTTPException(
            status_code=400,
            detail=f"Snapshot id {snapshot.id} does not match {project_id}",
        )
    try:
        workspace.replace(snapshot)
    except InvalidSnapshotError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return workspace.save(project_id)


@router.patch("/projects/{project_id}")
async def rename_project(
    project_id: str,
    request: RenameProjectRequest,
    workspace: Workspace = Depends(get_workspace),
) -> ProjectSnapshot:
    project = open_project(project_id, workspace)
    project.title = request.title.strip() or project.title
    return workspace.save(project_id)


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, workspace: Workspace = Depends(get_workspace)):
    """delete a project and its stored snapshot."""
    open_project(project_id, workspace)
    workspace.delete(project_id)
    return {"deleted": project_id}


@router.get("/projects/{project_id}/export")
async def export(
    project_id: str,
    format: str = "markdown",
    workspace: Workspace = Depends(get_workspace),
) -> PlainTextResponse:
    """export a project as markdown or json."""
    if format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported format: {format}. Supported: {', '.join(EXPORT_FORMATS)}",
        )
    snapshot = open_project(project_id, workspace).snapshot()
    return PlainTextResponse(
        export_project(snapshot, format),
        media_type=EXPORT_FORMATS[format]["media_type"],
    )


# --- History ---


@router.post("/projects/{project_id}/undo")
async def undo(project_id: str, workspace: Workspace = Depends(get_workspace)) -> HistoryStatus:
    """undo the last cascading deletion. No-op when there is nothing to undo."""
    project = open_project(project_id, workspace)
    project.store.undo()
    workspace.save(project_id)
    return _history_status(project)


@router.post("/projects/{project_id}/redo")
async def redo(project_id: str, workspace: Workspace = Depends(get_workspace)) -> HistoryStatus:
    """reapply the most recently undone deletion."""
    project = open_project(project_id, workspace)
    project.store.redo()
    workspace.save(project_id)
    return _history_status(project)


@router.get("/projects/{project_id}/history")
async def history_status(project_id: str, workspace: Workspace = Depends(get_workspace)) -> HistoryStatus:
    return _history_status(open_project(project_id, workspace))
