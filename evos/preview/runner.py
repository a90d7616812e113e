"""Subprocess runner for live-preview bundles.

This script is executed as a subprocess by PreviewExecutor:
    python -m evos.preview.runner '{"memory_limit_mb": 256, "cpu_time_limit_s": 10}'

It reads a PreviewBundle as JSON from stdin, runs the entry module and
writes the result as JSON to stdout.

Output (stdout): {"success": true, "output": "...", "error": null}
"""

from __future__ import annotations

import builtins
import contextlib
import importlib
import io
import json
import platform
import sys
import traceback

from evos.loader.executor import ModuleLoader
from evos.loader.transpiler import IdentityTranspiler
from evos.preview.bundler import PreviewBundle

MAX_OUTPUT_SIZE = 50_000  # chars

# Hidden from bundle bodies, reflection helpers included.
REMOVED_BUILTINS = {
    "open", "exec", "eval", "compile", "breakpoint", "input", "help",
    "exit", "quit", "getattr", "setattr", "delattr", "vars", "globals", "locals",
}


def restricted_builtins(allowed: list[str]) -> dict:
    """Builtins for bundle bodies: no I/O or code loading, imports allow-listed."""
    permitted = set(allowed)
    real_import = builtins.__import__

    def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level or name.split(".")[0] not in permitted:
            raise ImportError(f"import of '{name}' is not allowed in the preview")
        return real_import(name, globals, locals, fromlist, level)

    table = {k: v for k, v in vars(builtins).items() if k not in REMOVED_BUILTINS}
    table["__import__"] = guarded_import
    return table


def _apply_resource_limits(config: dict) -> None:
    """Apply OS-level resource limits (Linux only)."""
    if platform.system() != "Linux":
        return  # Windows/macOS: graceful degradation to timeout-only

    try:
        import resource

        mem_bytes = config.get("memory_limit_mb", 256) * 1024 * 1024
        cpu_secs = config.get("cpu_time_limit_s", 10)

        resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))
        resource.setrlimit(resource.RLIMIT_CPU, (cpu_secs, cpu_secs))
    except (ImportError, ValueError, OSError):
        pass  # Best effort


def run_bundle(bundle: PreviewBundle) -> dict:
    """Run the bundle's entry in this process and capture what it prints."""
    buffer = io.StringIO()
    try:
        capabilities = {
            name: importlib.import_module(name) for name in bundle.allowed_capabilities
        }
        loader = ModuleLoader(
            bundle.modules,
            transpiler=IdentityTranspiler(),
            capabilities=capabilities,
            extensions=bundle.extensions,
            builtins=restricted_builtins(bundle.allowed_capabilities),
        )
        with contextlib.redirect_stdout(buffer):
            exports = loader.load_entry(bundle.entry)
            entry = getattr(exports, "default", None)
            if callable(entry):
                result = entry()
                if result is not None:
                    print(result)
    except Exception as e:
        return {
            "success": False,
            "output": buffer.getvalue()[:MAX_OUTPUT_SIZE],
            "error": f"{type(e).__name__}: {e}",
            "traceback": traceback.format_exc(limit=8),
        }
    return {"success": True, "output": buffer.getvalue()[:MAX_OUTPUT_SIZE], "error": None}


def main() -> None:
    config = json.loads(sys.argv[1]) if len(sys.argv) > 1 else {}
    _apply_resource_limits(config)

    bundle = PreviewBundle.model_validate_json(sys.stdin.read())
    result = run_bundle(bundle)

    sys.stdout.write(json.dumps(result))
    sys.stdout.flush()


if __name__ == "__main__":
    main()
