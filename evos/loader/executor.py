"""ModuleLoader — lazy, cycle-safe execution of modules held in the VFS.

One loader instance is one session: its cell registry lives exactly as
long as a single bootstrap pass and is discarded wholesale afterwards.

Circular imports follow commonjs semantics. A cell and its (empty)
exports object are registered *before* the body runs, so a re-entrant
``require`` of the same path returns that shared, still-filling object
instead of executing the body again.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable

from evos.exceptions import (
    CompileError,
    LoaderError,
    ModuleExecutionError,
    ModuleNotFound,
)
from evos.loader.resolver import DEFAULT_EXTENSIONS, probe
from evos.loader.transpiler import MODULE_DIALECT, PythonTranspiler, Transpiler
from evos.types import CellStatus, VfsPath

_logger = logging.getLogger(__name__)

RequireFn = Callable[[str], Any]


@dataclass
class ModuleCell:
    path: VfsPath
    exports: ModuleType
    status: CellStatus = CellStatus.PENDING


class ModuleLoader:
    """Resolves specifiers against the VFS and runs module bodies on demand.

    Every body is executed in the namespace of its own exports object
    with ``require``, ``module``, ``exports`` and ``__file__`` defined.
    Capabilities are reachable only through ``require``. When ``builtins``
    is given it replaces the ambient builtins of every body.
    """

    def __init__(
        self,
        files: Mapping[VfsPath, str],
        *,
        transpiler: Transpiler | None = None,
        capabilities: Mapping[str, Any] | None = None,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        builtins: Mapping[str, Any] | None = None,
    ) -> None:
        self._files = files
        self._builtins = dict(builtins) if builtins is not None else None
        self._transpiler = transpiler or PythonTranspiler()
        self._capabilities = dict(capabilities or {})
        self._extensions = tuple(extensions)
        self._cells: dict[VfsPath, ModuleCell] = {}

    @property
    def cells(self) -> Mapping[VfsPath, ModuleCell]:
        return self._cells

    def resolve(self, importer: VfsPath, specifier: str) -> str:
        """Map a specifier to a capability name or an existing VFS path."""
        if specifier in self._capabilities:
            return specifier
        base, found = probe(self._files, importer, specifier, self._extensions)
        if found is None:
            raise ModuleNotFound(importer, specifier, base)
        return found

    def require_from(self, importer: VfsPath) -> RequireFn:
        def require(specifier: str) -> Any:
            target = self.resolve(importer, specifier)
            if target in self._capabilities:
                return self._capabilities[target]
            return self.load(target)

        return require

    def load(self, path: VfsPath) -> ModuleType:
        """Return the exports for ``path``, running its body at most once."""
        cell = self._cells.get(path)
        if cell is not None:
            # Pending here means a cycle: hand back the partial exports.
            return cell.exports

        if path not in self._files:
            raise ModuleNotFound(path, path, path)

        exports = ModuleType(path)
        cell = ModuleCell(path=path, exports=exports)
        self._cells[path] = cell

        body = self._transpiler.transform(
            self._files[path], filename=path, dialect=MODULE_DIALECT
        )
        namespace = exports.__dict__
        namespace.update(
            __file__=path,
            require=self.require_from(path),
            module=exports,
            exports=exports,
        )
        if self._builtins is not None:
            namespace["__builtins__"] = self._builtins

        try:
            code = compile(body, path, "exec")
            exec(code, namespace)
        except LoaderError:
            raise
        except SyntaxError as e:
            raise CompileError(path, e.msg or str(e), e.lineno) from e
        except Exception as e:
            raise ModuleExecutionError(path, e) from e

        cell.status = CellStatus.READY
        _logger.debug("Loaded module %s", path)
        return exports

    def load_entry(self, path: VfsPath) -> ModuleType:
        """Load a stage or preview entry given by absolute path."""
        return self.load(self.resolve(path, path))
