"""PreviewExecutor — run the bundled tree behind a process boundary.

Unlike the module loader, the preview never executes in the host
process. The bundle crosses into a subprocess with memory and CPU
limits and a wall-clock timeout, so a crashing or hanging preview
cannot touch the authoritative tree or the evolution engine.

Usage:
    executor = PreviewExecutor(timeout_s=10)
    result = await executor.run(vfs.snapshot(), entry="/main.py")
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from collections.abc import Mapping, Sequence

from pydantic import BaseModel

from evos.events.bus import EventBus
from evos.exceptions import BundleError
from evos.loader.resolver import DEFAULT_EXTENSIONS
from evos.loader.transpiler import Transpiler
from evos.preview.bundler import build_bundle

_logger = logging.getLogger(__name__)


class PreviewResult(BaseModel):
    success: bool = False
    output: str = ""
    error: str | None = None
    traceback: str = ""
    execution_time_ms: float = 0.0


class PreviewExecutor:
    def __init__(
        self,
        *,
        allowed_capabilities: Sequence[str] = (),
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        timeout_s: int = 10,
        memory_limit_mb: int = 256,
        transpiler: Transpiler | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._allowed = list(allowed_capabilities)
        self._extensions = list(extensions)
        self._timeout = timeout_s
        self._memory_limit = memory_limit_mb
        self._transpiler = transpiler
        self._event_bus = event_bus

    async def run(self, files: Mapping[str, str], entry: str) -> PreviewResult:
        """Bundle ``files`` and run ``entry``. Errors are returned, never raised."""
        start = time.monotonic()
        try:
            bundle = build_bundle(
                dict(files),
                entry,
                allowed_capabilities=self._allowed,
                extensions=self._extensions,
                transpiler=self._transpiler,
            )
        except BundleError as e:
            return await self._finish(PreviewResult(error=str(e)), start)

        config_json = json.dumps({
            "memory_limit_mb": self._memory_limit,
            "cpu_time_limit_s": self._timeout,
        })

        try:
            proc = await asyncio.create_subprocess_exec(
                sys.executable, "-m", "evos.preview.runner", config_json,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return await self._finish(PreviewResult(error=f"Preview process failed to start: {e}"), start)

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(input=bundle.model_dump_json().encode()),
                timeout=self._timeout + 5,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return await self._finish(
                PreviewResult(error=f"Preview timed out after {self._timeout}s"), start
            )

        if proc.returncode != 0:
            err = stderr.decode(errors="replace")[:2000] if stderr else "Unknown error"
            return await self._finish(
                PreviewResult(error=f"Preview process crashed (exit={proc.returncode}): {err}"),
                start,
            )

        try:
            data = json.loads(stdout.decode())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return await self._finish(
                PreviewResult(error=f"Failed to parse preview output: {e}"), start
            )

        return await self._finish(
            PreviewResult(
                success=bool(data.get("success")),
                output=data.get("output", ""),
                error=data.get("error"),
                traceback=data.get("traceback", ""),
            ),
            start,
        )

    async def _finish(self, result: PreviewResult, start: float) -> PreviewResult:
        result.execution_time_ms = (time.monotonic() - start) * 1000
        if result.success:
            _logger.info("Preview ran in %.0fms", result.execution_time_ms)
        else:
            _logger.warning("Preview failed: %s", result.error)
        if self._event_bus:
            await self._event_bus.emit(
                "preview.completed" if result.success else "preview.failed",
                {"error": result.error or ""},
                source="preview_executor",
            )
        return result
