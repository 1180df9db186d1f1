"""Open projects held in memory, backed by snapshot storage.

Each open project owns one ``GraphStore``. Routes mutate the store and then
call ``save`` so storage always holds the latest snapshot.

``GraphStore`` has no locking. Every route that reaches the workspace is an
``async def`` so all reads and writes run on the event loop thread.
"""

import logging
from dataclasses import dataclass, field

from convograph.config import Settings, get_settings
from convograph.models.project import ProjectSettings, ProjectSnapshot, ProjectSummary
from convograph.storage.manager import StorageManager, build_storage
from convograph.store import GraphStore
from convograph.utils.identifiers import generate_project_id

logger = logging.getLogger(__name__)


@dataclass
class OpenProject:
    project_id: str
    title: str
    store: GraphStore
    settings: ProjectSettings = field(default_factory=ProjectSettings)
    version: int = 1

    def snapshot(self) -> ProjectSnapshot:
        return self.store.snapshot(
            self.project_id,
            title=self.title,
            settings=self.settings,
            version=self.version,
        )


class Workspace:
    """Registry of open projects."""

    def __init__(self, storage: StorageManager, settings: Settings | None = None) -> None:
        self.storage = storage
        self.settings = settings or Settings()
        self._open: dict[str, OpenProject] = {}

    def list_projects(self) -> list[ProjectSummary]:
        return self.storage.list_projects()

    def create(self, title: str | None = None) -> OpenProject:
        project = OpenProject(
            project_id=generate_project_id(),
            title=(title or "").strip() or "Untitled Project",
            store=GraphStore(),
            settings=ProjectSettings(default_model=self.settings.default_model),
        )
        self._open[project.project_id] = project
        self.save(project.project_id)
        return project

    def get(self, project_id: str) -> OpenProject | None:
        """Return an open project, hydrating it from storage on first access."""
        project = self._open.get(project_id)
        if project is not None:
            return project

        snapshot = self.storage.load_project(project_id)
        if snapshot is None:
            return None
        project = self._from_snapshot(snapshot)
        self._open[project_id] = project
        return project

    def replace(self, snapshot: ProjectSnapshot) -> OpenProject:
        """Import a snapshot, replacing any open project with the same id."""
        project = self._from_snapshot(snapshot)
        self._open[snapshot.id] = project
        self.save(snapshot.id)
        return project

    def save(self, project_id: str) -> ProjectSnapshot:
        project = self._open[project_id]
        snapshot = project.snapshot()
        self.storage.save_project(snapshot)
        return snapshot

    def delete(self, project_id: str) -> None:
        self._open.pop(project_id, None)
        self.storage.delete_project(project_id)

    def _from_snapshot(self, snapshot: ProjectSnapshot) -> OpenProject:
        return OpenProject(
            project_id=snapshot.id,
            title=snapshot.metadata.title,
            store=GraphStore.from_snapshot(snapshot),
            settings=snapshot.settings,
            version=snapshot.version,
        )


_workspace: Workspace | None = None


def get_workspace() -> Workspace:
    """FastAPI dependency: the process-wide workspace."""
    global _workspace
    if _workspace is None:
        settings = get_settings()
        _workspace = Workspace(build_storage(settings), settings)
    return _workspace
