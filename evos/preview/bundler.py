"""Bundler — eagerly transpile the source tree into one self-contained bundle.

Security layers applied before anything runs:
1. Every module body must transpile
2. Import statements may only name allow-listed capabilities
3. exec/eval/compile/__import__/open calls are rejected
4. ``__builtins__`` and private or dunder attributes may not be referenced

The runner enforces the same allow-list again at run time through a
restricted builtins table.
"""

from __future__ import annotations

import ast
from collections.abc import Mapping, Sequence

from pydantic import BaseModel, Field

from evos.exceptions import BundleError, CompileError
from evos.loader.resolver import DEFAULT_EXTENSIONS
from evos.loader.transpiler import MODULE_DIALECT, PythonTranspiler, Transpiler

BLOCKED_CALLS = {"exec", "eval", "compile", "__import__", "open"}


class PreviewBundle(BaseModel):
    """Everything the preview process needs; serialized across the boundary."""

    entry: str
    modules: dict[str, str] = Field(default_factory=dict)
    allowed_capabilities: list[str] = Field(default_factory=list)
    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


def check_body(path: str, body: str, allowed: set[str]) -> list[str]:
    """Static analysis of one transpiled body. Returns the issues found."""
    issues: list[str] = []
    tree = ast.parse(body, filename=path)
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                module = alias.name.split(".")[0]
                if module not in allowed:
                    issues.append(f"{path}: import of '{module}' is not allowed")
        elif isinstance(node, ast.ImportFrom):
            module = (node.module or "").split(".")[0]
            if node.level or module not in allowed:
                issues.append(f"{path}: import from '{node.module or '.'}' is not allowed")
        elif isinstance(node, ast.Call):
            func = node.func
            if isinstance(func, ast.Name) and func.id in BLOCKED_CALLS:
                issues.append(f"{path}: call to {func.id}() is not allowed")
        elif isinstance(node, ast.Name) and node.id == "__builtins__":
            issues.append(f"{path}: reference to __builtins__ is not allowed")
        elif isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            issues.append(f"{path}: access to attribute '{node.attr}' is not allowed")
    return issues


def build_bundle(
    files: Mapping[str, str],
    entry: str,
    *,
    allowed_capabilities: Sequence[str] = (),
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
    transpiler: Transpiler | None = None,
) -> PreviewBundle:
    """Transpile every module file and check it. Raises BundleError."""
    transpiler = transpiler or PythonTranspiler()
    allowed = set(allowed_capabilities)
    modules: dict[str, str] = {}
    issues: list[str] = []

    for path in sorted(files):
        if not path.endswith(tuple(extensions)):
            continue
        try:
            body = transpiler.transform(files[path], filename=path, dialect=MODULE_DIALECT)
        except CompileError as e:
            raise BundleError(str(e)) from e
        issues.extend(check_body(path, body, allowed))
        modules[path] = body

    if entry not in modules:
        raise BundleError(f"Entry point {entry} not found in project.")
    if issues:
        raise BundleError("Bundle rejected:\n" + "\n".join(issues))

    return PreviewBundle(
        entry=entry,
        modules=modules,
        allowed_capabilities=sorted(allowed),
        extensions=list(extensions),
    )
