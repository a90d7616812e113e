"""Project stores — persist the source tree under one fixed key.

The tree is serialized as a single ``{path: content}`` object. A factory
reset deletes the key, after which ``load()`` returns None and the
supervisor falls back to the built-in seed tree.

Two backends:
  - SqliteProjectStore: key/value table in the workspace database
  - JsonFileProjectStore: one JSON document holding ``{key: tree}``
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

import aiosqlite
import orjson

from evos.exceptions import PersistenceError


def _decode_tree(raw: bytes | str) -> dict[str, str]:
    data = orjson.loads(raw)
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise PersistenceError("Persisted project is not a path -> content object")
    relative = sorted(k for k in data if not k.startswith("/"))
    if relative:
        raise PersistenceError(f"Persisted project has paths not starting with '/': {relative}")
    return data


class ProjectStore(ABC):
    """Key/value persistence for the source tree."""

    def __init__(self, key: str) -> None:
        self.key = key

    @abstractmethod
    async def load(self) -> dict[str, str] | None:
        """Return the persisted tree, or None if nothing is stored."""
        ...

    @abstractmethod
    async def save(self, files: dict[str, str]) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Delete the key (factory reset)."""
        ...

    async def close(self) -> None:
        return None


class SqliteProjectStore(ProjectStore):
    """Source tree persisted as one row in a SQLite key/value table."""

    def __init__(self, db_path: str | Path, key: str) -> None:
        super().__init__(key)
        self._db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the database and create the table if needed."""
        if self._db is not None:
            return
        try:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._db_path)
            await self._db.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            await self._db.commit()
        except (OSError, aiosqlite.Error) as e:
            raise PersistenceError(f"Cannot open store {self._db_path}: {e}") from e

    async def load(self) -> dict[str, str] | None:
        await self.initialize()
        try:
            async with self._db.execute(
                "SELECT value FROM kv_store WHERE key = ?", (self.key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to read project: {e}") from e
        if row is None:
            return None
        try:
            return _decode_tree(row[0])
        except orjson.JSONDecodeError as e:
            raise PersistenceError(f"Persisted project is corrupt: {e}") from e

    async def save(self, files: dict[str, str]) -> None:
        await self.initialize()
        async with self._lock:
            try:
                await self._db.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (self.key, orjson.dumps(files).decode()),
                )
                await self._db.commit()
            except aiosqlite.Error as e:
                raise PersistenceError(f"Failed to save project: {e}") from e

    async def clear(self) -> None:
        await self.initialize()
        async with self._lock:
            try:
                await self._db.execute("DELETE FROM kv_store WHERE key = ?", (self.key,))
                await self._db.commit()
            except aiosqlite.Error as e:
                raise PersistenceError(f"Failed to clear project: {e}") from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None


class JsonFileProjectStore(ProjectStore):
    """Source tree persisted in a JSON document on disk."""

    def __init__(self, path: str | Path, key: str) -> None:
        super().__init__(key)
        self._path = Path(path)

    def _read_document(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self._path} does not hold a JSON object")
        return data

    def _write_document(self, data: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        except OSError as e:
            raise PersistenceError(f"Cannot write {self._path}: {e}") from e

    async def load(self) -> dict[str, str] | None:
        data = self._read_document()
        if self.key not in data:
            return None
        return _decode_tree(orjson.dumps(data[self.key]))

    async def save(self, files: dict[str, str]) -> None:
        data = self._read_document()
        data[self.key] = files
        self._write_document(data)

    async def clear(self) -> None:
        data = self._read_document()
        if data.pop(self.key, None) is not None:
            self._write_document(data)


def create_store(backend: str, *, db_path: Path, json_path: Path, key: str) -> ProjectStore:
    if backend == "sqlite":
        return SqliteProjectStore(db_path, key)
    if backend == "json":
        return JsonFileProjectStore(json_path, key)
    raise PersistenceError(f"Unknown store backend '{backend}'")
