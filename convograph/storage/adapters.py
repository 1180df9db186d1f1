"""Storage backends for project snapshots.

Snapshots are stored as validated JSON; loading goes through
``ProjectSnapshot.model_validate_json`` so a bad payload fails at the
boundary instead of inside a graph query.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from convograph.models.project import ProjectSnapshot, ProjectSummary

logger = logging.getLogger(__name__)


class ProjectStorage(Protocol):
    """What the application needs from a snapshot store."""

    name: str

    def initialize(self) -> None:
        ...

    def save_project(self, snapshot: ProjectSnapshot) -> None:
        ...

    def load_project(self, project_id: str) -> ProjectSnapshot | None:
        ...

    def delete_project(self, project_id: str) -> None:
        ...

    def list_projects(self) -> list[ProjectSummary]:
        ...


def _summarize(snapshot: ProjectSnapshot) -> ProjectSummary:
    return ProjectSummary(
        id=snapshot.id,
        title=snapshot.metadata.title,
        updated_at=snapshot.metadata.updated_at,
        node_count=len(snapshot.graph.nodes),
    )


class MemoryStorage:
    """In-process storage; data is lost when the process exits."""

    name = "memory"

    def __init__(self) -> None:
        self._projects: dict[str, str] = {}

    def initialize(self) -> None:
        pass

    def save_project(self, snapshot: ProjectSnapshot) -> None:
        # keep serialized copies so later edits to the caller's object don't leak in
        self._projects[snapshot.id] = snapshot.model_dump_json()

    def load_project(self, project_id: str) -> ProjectSnapshot | None:
        raw = self._projects.get(project_id)
        if raw is None:
            return None
        return ProjectSnapshot.model_validate_json(raw)

    def delete_project(self, project_id: str) -> None:
        self._projects.pop(project_id, None)

    def list_projects(self) -> list[ProjectSummary]:
        summaries = [
            _summarize(ProjectSnapshot.model_validate_json(raw))
            for raw in self._projects.values()
        ]
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries


class FileStorage:
    """One JSON file per project in a directory."""

    name = "file"

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, project_id: str) -> Path:
        return self.directory / f"{project_id}.json"

    def initialize(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def save_project(self, snapshot: ProjectSnapshot) -> None:
        self.initialize()
        self._path(snapshot.id).write_text(snapshot.model_dump_json(indent=2))

    def load_project(self, project_id: str) -> ProjectSnapshot | None:
        path = self._path(project_id)
        if not path.exists():
            return None
        return ProjectSnapshot.model_validate_json(path.read_text())

    def delete_project(self, project_id: str) -> None:
        path = self._path(project_id)
        if path.exists():
            path.unlink()

    def list_projects(self) -> list[ProjectSummary]:
        self.initialize()
        summaries = []
        for path in self.directory.glob("*.json"):
            try:
                snapshot = ProjectSnapshot.model_validate_json(path.read_text())
            except ValidationError:
                logger.warning("skipping invalid project file %s", path)
                continue
            summaries.append(_summarize(snapshot))
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries


class SqliteStorage:
    """Projects stored as JSON rows in a SQLite database."""

    name = "sqlite"

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                create table if not exists projects (
                    project_id text primary key,
                    snapshot_json text not null,
                    title text not null,
                    node_count integer not null default 0,
                    updated_at integer not null
                )
                """
            )
            conn.execute(
                "create index if not exists idx_projects_updated_at on projects(updated_at)"
            )
            conn.commit()

    def save_project(self, snapshot: ProjectSnapshot) -> None:
        """Insert or update a project snapshot."""
        with self._connect() as conn:
            conn.execute(
                """
                insert into projects (project_id, snapshot_json, title, node_count, updated_at)
                values (?, ?, ?, ?, ?)
                on conflict(project_id) do update set
                    snapshot_json = excluded.snapshot_json,
                    title = excluded.title,
                    node_count = excluded.node_count,
                    updated_at = excluded.updated_at
                """,
                (
                    snapshot.id,
                    snapshot.model_dump_json(),
                    snapshot.metadata.title,
                    len(snapshot.graph.nodes),
                    snapshot.metadata.updated_at,
                ),
            )
            conn.commit()

    def load_project(self, project_id: str) -> ProjectSnapshot | None:
        with self._connect() as conn:
            row = conn.execute(
                "select snapshot_json from projects where project_id = ?",
                (project_id,),
            ).fetchone()
        if not row:
            return None
        return ProjectSnapshot.model_validate_json(row["snapshot_json"])

    def delete_project(self, project_id: str) -> None:
        with self._connect() as conn:
            conn.execute("delete from projects where project_id = ?", (project_id,))
            conn.commit()

    def list_projects(self) -> list[ProjectSummary]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                select project_id, title, node_count, updated_at
                from projects
                order by updated_at desc
                """
            ).fetchall()
        return [
            ProjectSummary(
                id=row["project_id"],
                title=row["title"],
                updated_at=row["updated_at"],
                node_count=row["node_count"],
            )
            for row in rows
        ]
