"""EvolutionEngine — turns a free-text goal into applied source-tree edits.

Each call runs the same cycle:
  1. Build a request (goal + snapshot of the tree) for the chosen protocol
  2. Ask the generative service for a schema-constrained answer
  3. Validate the answer into typed edits
  4. Check the edits against the tree (boot-critical deletes are refused)
  5. Apply them in one step
  6. Emit events and return a result

Validation finishes before the first write, so a failing call leaves
the tree exactly as it was.

The engine is not reentrant. Callers must keep at most one evolution
in flight (the supervisor holds a busy flag for this).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from evos.events.bus import EventBus
from evos.evolution.models import (
    BatchEdit,
    DeleteAction,
    EditAction,
    EvolutionResult,
    ProtocolName,
)
from evos.evolution.protocols import MultiTargetProtocol, SingleTargetProtocol
from evos.evolution.service import GenerativeCodeService
from evos.exceptions import EvolutionError, ProtectedPathError
from evos.vfs.filesystem import VirtualFileSystem

_logger = logging.getLogger(__name__)


class EvolutionEngine:
    def __init__(
        self,
        vfs: VirtualFileSystem,
        service: GenerativeCodeService,
        *,
        os_entry: str = "/boot/bootloader.py",
        app_entry: str = "/boot/kernel.py",
        boot_prefix: str = "/boot/",
        capabilities: Sequence[str] = (),
        temperature: float | None = 0.1,
        event_bus: EventBus | None = None,
    ) -> None:
        self._vfs = vfs
        self._service = service
        self._event_bus = event_bus
        protocol_args = dict(
            os_entry=os_entry,
            app_entry=app_entry,
            boot_prefix=boot_prefix,
            capabilities=capabilities,
        )
        self.single = SingleTargetProtocol(**protocol_args)
        self.batch = MultiTargetProtocol(**protocol_args)
        self.single.temperature = temperature
        self._history: list[EvolutionResult] = []

    async def evolve_single(self, goal: str, target_path: str) -> EvolutionResult:
        """Single-target protocol: one UPDATE, CREATE or DELETE."""
        protocol = self.single
        request = protocol.build_request(self._vfs, goal, target_path)
        await self._emit("evolution.started", {
            "request_id": request.id,
            "protocol": protocol.name.value,
            "target_path": target_path,
        })
        try:
            system, prompt = protocol.render(request)
            raw = await self._service.generate(
                system=system,
                prompt=prompt,
                tool_name=protocol.tool_name,
                schema=protocol.schema,
                description="Apply exactly one edit to the project source tree.",
                temperature=protocol.temperature,
            )
            action = protocol.parse(raw)
            changed, deleted = self.apply_edit(action)
        except EvolutionError as e:
            await self._failed(request.id, protocol.name, e)
            raise

        result = EvolutionResult(
            request_id=request.id,
            protocol=protocol.name,
            success=True,
            summary=f"{action.action} {action.path}",
            changed_paths=changed,
            deleted_paths=deleted,
        )
        return await self._completed(result)

    async def evolve_batch(
        self, goal: str, context_path: str | None = None
    ) -> EvolutionResult:
        """Multi-target protocol: any number of whole-file replacements."""
        protocol = self.batch
        request = protocol.build_request(self._vfs, goal, context_path)
        await self._emit("evolution.started", {
            "request_id": request.id,
            "protocol": protocol.name.value,
            "target_path": context_path,
        })
        try:
            system, prompt = protocol.render(request)
            raw = await self._service.generate(
                system=system,
                prompt=prompt,
                tool_name=protocol.tool_name,
                schema=protocol.schema,
                description="Submit the plan, summary and full content of every changed file.",
            )
            batch = protocol.parse(raw)
            changed = self.apply_batch(batch)
        except EvolutionError as e:
            await self._failed(request.id, protocol.name, e)
            raise

        summary = batch.summary or "Evolution complete!"
        if not batch.changes:
            summary = "No changes were made. A more specific prompt might help."
        result = EvolutionResult(
            request_id=request.id,
            protocol=protocol.name,
            success=True,
            summary=summary,
            thought=batch.thought,
            changed_paths=changed,
        )
        return await self._completed(result)

    # ── Applying ────────────────────────────────────────────────

    def apply_edit(self, action: EditAction) -> tuple[list[str], list[str]]:
        """Upsert or remove exactly the one named path.

        Returns ``(changed_paths, deleted_paths)``. Re-applying the same
        action to the same tree changes nothing.
        """
        if isinstance(action, DeleteAction):
            if self._vfs.is_boot_critical(action.path):
                raise ProtectedPathError(
                    f"Refusing to delete boot-critical file {action.path}"
                )
            removed = self._vfs.remove(action.path)
            return [], [action.path] if removed else []
        changed = self._vfs.write(action.path, action.content)
        return ([action.path] if changed else []), []

    def apply_batch(self, batch: BatchEdit) -> list[str]:
        """Upsert every listed path. Paths are distinct, so order is irrelevant."""
        return self._vfs.write_many({c.path: c.content for c in batch.changes})

    def history(self, limit: int = 20) -> list[EvolutionResult]:
        return list(reversed(self._history[-limit:]))

    # ── Internals ───────────────────────────────────────────────

    async def _completed(self, result: EvolutionResult) -> EvolutionResult:
        self._history.append(result)
        _logger.info(
            "Evolution %s applied: %d changed, %d deleted",
            result.request_id, len(result.changed_paths), len(result.deleted_paths),
        )
        await self._emit("evolution.applied", {
            "request_id": result.request_id,
            "protocol": result.protocol.value,
            "changed_paths": result.changed_paths,
            "deleted_paths": result.deleted_paths,
        })
        return result

    async def _failed(self, request_id: str, protocol: ProtocolName, error: Exception) -> None:
        self._history.append(EvolutionResult(
            request_id=request_id, protocol=protocol, error=str(error),
        ))
        _logger.warning("Evolution %s failed: %s", request_id, error)
        await self._emit("evolution.failed", {
            "request_id": request_id,
            "protocol": protocol.value,
            "error": str(error),
        })

    async def _emit(self, topic: str, data: dict) -> None:
        if self._event_bus:
            await self._event_bus.emit(topic, data, source="evolution_engine")
