"""Source tree store — the editable, persisted file map evos runs from."""

from evos.vfs.filesystem import VirtualFileSystem
from evos.vfs.store import JsonFileProjectStore, ProjectStore, SqliteProjectStore

__all__ = [
    "VirtualFileSystem",
    "ProjectStore",
    "SqliteProjectStore",
    "JsonFileProjectStore",
]
