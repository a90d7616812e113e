"""Specifier resolution — relative path math and candidate probing."""

from __future__ import annotations

from collections.abc import Container, Sequence

DEFAULT_EXTENSIONS = (".py", ".pyw")


def resolve_base(importer: str, specifier: str) -> str:
    """Resolve ``specifier`` against the importer's directory.

    ``..`` pops a segment, ``.`` and empty segments are no-ops. Absolute
    specifiers start from the root.
    """
    if specifier.startswith("/"):
        stack: list[str] = []
    else:
        stack = [p for p in importer.split("/")[:-1] if p]
    for part in specifier.split("/"):
        if part == "..":
            if stack:
                stack.pop()
        elif part and part != ".":
            stack.append(part)
    return "/" + "/".join(stack)


def candidate_paths(base: str, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> list[str]:
    """The ordered probe list: exact, +ext, +/index+ext."""
    first, second = extensions[0], extensions[1]
    return [
        base,
        f"{base}{first}",
        f"{base}{second}",
        f"{base}/index{first}",
        f"{base}/index{second}",
    ]


def probe(
    files: Container[str],
    importer: str,
    specifier: str,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> tuple[str, str | None]:
    """Return ``(resolved_base, first existing candidate or None)``."""
    base = resolve_base(importer, specifier)
    for candidate in candidate_paths(base, extensions):
        if candidate in files:
            return base, candidate
    return base, None
