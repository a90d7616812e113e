"""Transpilers — turn VFS source text into an executable module body.

The loader treats the transpiler as a pure, synchronous collaborator:
``transform(source, filename=..., dialect=...)`` returns body text or
raises CompileError.
"""

from __future__ import annotations

import ast
import textwrap
from abc import ABC, abstractmethod

from evos.exceptions import CompileError

MODULE_DIALECT = "module"


class Transpiler(ABC):
    @abstractmethod
    def transform(self, source: str, *, filename: str, dialect: str = MODULE_DIALECT) -> str:
        ...


class PythonTranspiler(Transpiler):
    """Normalizes and syntax-checks Python source.

    Generated files often arrive indented or with Windows line endings,
    so both are normalized before parsing.
    """

    def transform(self, source: str, *, filename: str, dialect: str = MODULE_DIALECT) -> str:
        if dialect != MODULE_DIALECT:
            raise CompileError(filename, f"Unsupported module dialect '{dialect}'")
        body = textwrap.dedent(source.lstrip("\ufeff").replace("\r\n", "\n"))
        try:
            ast.parse(body, filename=filename)
        except SyntaxError as e:
            raise CompileError(filename, e.msg or str(e), e.lineno) from e
        return body


class IdentityTranspiler(Transpiler):
    """For bodies that were already transpiled (preview bundles)."""

    def transform(self, source: str, *, filename: str, dialect: str = MODULE_DIALECT) -> str:
        return source
