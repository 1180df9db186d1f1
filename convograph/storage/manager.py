"""Pick the first storage backend that comes up, falling back down the list."""

import logging
import sqlite3

from convograph.config import Settings
from convograph.models.project import ProjectSnapshot, ProjectSummary
from convograph.storage.adapters import FileStorage, MemoryStorage, ProjectStorage, SqliteStorage

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """Raised when no backend could be initialized."""


class StorageManager:
    """Delegates to the active backend.

    ``initialize`` tries each backend in order; the first one whose
    ``initialize`` succeeds becomes active. Memory storage never fails, so
    listing it last guarantees a working (if volatile) store.
    """

    def __init__(self, backends: list[ProjectStorage]) -> None:
        self.backends = backends
        self.active: ProjectStorage | None = None

    def initialize(self) -> ProjectStorage:
        for backend in self.backends:
            try:
                backend.initialize()
            except (OSError, sqlite3.Error) as e:
                logger.warning("failed to initialize %s storage: %s", backend.name, e)
                continue
            self.active = backend
            logger.info("storage initialized: %s", backend.name)
            return backend
        raise StorageUnavailableError("No storage backend available")

    def _backend(self) -> ProjectStorage:
        if self.active is None:
            raise StorageUnavailableError("Storage not initialized")
        return self.active

    def save_project(self, snapshot: ProjectSnapshot) -> None:
        self._backend().save_project(snapshot)

    def load_project(self, project_id: str) -> ProjectSnapshot | None:
        return self._backend().load_project(project_id)

    def delete_project(self, project_id: str) -> None:
        self._backend().delete_project(project_id)

    def list_projects(self) -> list[ProjectSummary]:
        return self._backend().list_projects()


def build_storage(settings: Settings) -> StorageManager:
    """Storage chain for the configured backend, always ending in memory."""
    backends: list[ProjectStorage] = []
    if settings.storage_backend == "sqlite":
        backends.append(SqliteStorage(settings.db_path))
    elif settings.storage_backend == "file":
        backends.append(FileStorage(settings.projects_dir))
    backends.append(MemoryStorage())

    manager = StorageManager(backends)
    manager.initialize()
    return manager
