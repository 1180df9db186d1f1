"""Snapshot persistence and export."""

from convograph.storage.adapters import FileStorage, MemoryStorage, ProjectStorage, SqliteStorage
from convograph.storage.export import EXPORT_FORMATS, export_json, export_markdown, export_project
from convograph.storage.manager import StorageManager, StorageUnavailableError, build_storage

__all__ = [
    "FileStorage",
    "MemoryStorage",
    "ProjectStorage",
    "SqliteStorage",
    "EXPORT_FORMATS",
    "export_json",
    "export_markdown",
    "export_project",
    "StorageManager",
    "StorageUnavailableError",
    "build_storage",
]
