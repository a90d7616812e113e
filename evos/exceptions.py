"""Custom exception hierarchy for evos."""

from __future__ import annotations


class EvosError(Exception):
    """Base for all evos errors."""


class InvalidPathError(EvosError):
    """A source tree path does not start with '/'."""


class PersistenceError(EvosError):
    """The persistent store could not be read or written."""


class CapabilityError(EvosError):
    """A capability binding is invalid or failed to load."""


# ── Loader ───────────────────────────────────────────────────────────────────


class LoaderError(EvosError):
    """Base for failures raised while resolving, compiling or running modules."""


class ModuleNotFound(LoaderError):
    """No candidate path for a specifier exists in the source tree."""

    def __init__(self, importer: str, specifier: str, resolved_base: str) -> None:
        self.importer = importer
        self.specifier = specifier
        self.resolved_base = resolved_base
        super().__init__(
            f"Module not found: can't import '{specifier}' from '{importer}' "
            f"(resolved to '{resolved_base}')"
        )


class CompileError(LoaderError):
    """The transpiler rejected a module's source."""

    def __init__(self, path: str, detail: str, lineno: int | None = None) -> None:
        self.path = path
        self.detail = detail
        self.lineno = lineno
        where = f"{path}:{lineno}" if lineno else path
        super().__init__(f"Compile error in {where}: {detail}")


class ModuleExecutionError(LoaderError):
    """A module body raised while executing."""

    def __init__(self, path: str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Error executing {path}: {type(cause).__name__}: {cause}")


# ── Bootstrap ────────────────────────────────────────────────────────────────


class StageStateError(EvosError):
    """Invalid stage state transition."""


class EntryPointError(EvosError):
    """A stage entry is missing or does not export a callable default."""


# ── Evolution ────────────────────────────────────────────────────────────────


class EvolutionError(EvosError):
    """An evolution request failed; the source tree is unchanged."""


class SchemaViolationError(EvolutionError):
    """The generative service returned an empty or non-conforming response."""


class ProtectedPathError(EvolutionError):
    """An evolution tried to delete a boot-critical path."""


class EvolutionBusyError(EvolutionError):
    """Another evolution request is still in flight."""


class GenerativeServiceError(EvolutionError):
    """The generative code service is unavailable or the call failed."""


# ── Preview ──────────────────────────────────────────────────────────────────


class BundleError(EvosError):
    """The live-preview bundle could not be built."""
