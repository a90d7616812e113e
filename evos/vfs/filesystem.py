"""VirtualFileSystem — the in-memory map of absolute paths to source text."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from evos.exceptions import InvalidPathError
from evos.types import VfsPath


def check_path(path: str) -> VfsPath:
    if not isinstance(path, str) or not path.startswith("/"):
        raise InvalidPathError(f"Path must start with '/': {path!r}")
    return path


class VirtualFileSystem(Mapping[VfsPath, str]):
    """Mutable path → content mapping.

    Read access follows the Mapping protocol. Writes are whole-file
    overwrites; there is no notion of partial edits or directories.
    Paths under ``boot_prefix`` are boot-critical.
    """

    def __init__(
        self,
        files: Mapping[str, str] | None = None,
        boot_prefix: str = "/boot/",
    ) -> None:
        self._files: dict[VfsPath, str] = {}
        self._boot_prefix = boot_prefix
        if files:
            self.replace(files)

    def __getitem__(self, path: str) -> str:
        return self._files[path]

    def __iter__(self) -> Iterator[VfsPath]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def paths(self) -> list[VfsPath]:
        return sorted(self._files)

    def view(self) -> Mapping[VfsPath, str]:
        """Live read-only view; reflects later writes."""
        return MappingProxyType(self._files)

    def snapshot(self) -> dict[VfsPath, str]:
        return dict(self._files)

    @property
    def boot_prefix(self) -> str:
        return self._boot_prefix

    def is_boot_critical(self, path: str) -> bool:
        return path.startswith(self._boot_prefix)

    def write(self, path: str, content: str) -> bool:
        """Create or overwrite one path. Returns True if content changed."""
        check_path(path)
        changed = self._files.get(path) != content
        self._files[path] = content
        return changed

    def remove(self, path: str) -> bool:
        """Delete one path. Deleting an absent path is a no-op."""
        check_path(path)
        return self._files.pop(path, None) is not None

    def write_many(self, files: Mapping[str, str]) -> list[VfsPath]:
        """Upsert every entry. Paths are validated before anything is written."""
        for path in files:
            check_path(path)
        changed = [p for p, c in files.items() if self._files.get(p) != c]
        self._files.update(files)
        return changed

    def replace(self, files: Mapping[str, str]) -> None:
        """Swap the whole tree for ``files`` (load and factory reset)."""
        for path in files:
            check_path(path)
        self._files.clear()
        self._files.update(files)
