"""Module loader — resolves, compiles and runs modules straight from the VFS."""

from evos.loader.capabilities import CapabilityBridge
from evos.loader.executor import ModuleCell, ModuleLoader
from evos.loader.resolver import candidate_paths, resolve_base
from evos.loader.transpiler import IdentityTranspiler, PythonTranspiler, Transpiler

__all__ = [
    "CapabilityBridge",
    "ModuleCell",
    "ModuleLoader",
    "Transpiler",
    "PythonTranspiler",
    "IdentityTranspiler",
    "candidate_paths",
    "resolve_base",
]
