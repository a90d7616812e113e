"""BootSupervisor — runs the three-stage bootstrap chain.

  bootstrap (this code, immutable)
      loads capabilities, then compiles and runs
  os        (``/boot/bootloader.py`` in the source tree)
      receives a Handoff and may launch
  app       (``/boot/kernel.py`` in the source tree)

Every stage runs inside its own failure boundary: a compile, resolve or
runtime failure marks only that stage FAILED and earlier stages keep
running. Each pass builds fresh module registries, so any mutation of
the tree is observed by a full reload of the os and app stages.

There is no preemption. A module body that never returns blocks the
whole process; use the preview executor for untrusted code.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Mapping, Sequence

import structlog

from evos.boot.handoff import BootReport, Handoff, StageOutcome
from evos.boot.state_machine import StageStateMachine
from evos.events.bus import EventBus
from evos.evolution.engine import EvolutionEngine
from evos.evolution.models import EvolutionResult, ProtocolName
from evos.evolution.service import GenerativeCodeService
from evos.exceptions import (
    CapabilityError,
    EntryPointError,
    EvolutionBusyError,
    EvolutionError,
    InvalidPathError,
    LoaderError,
    ModuleNotFound,
    PersistenceError,
)
from evos.loader.capabilities import CapabilityBridge
from evos.loader.executor import ModuleLoader
from evos.loader.resolver import DEFAULT_EXTENSIONS
from evos.loader.transpiler import Transpiler
from evos.types import FailureKind, StageName, StageState
from evos.vfs.filesystem import VirtualFileSystem
from evos.vfs.seed import SEED_TREE
from evos.vfs.store import ProjectStore

logger = structlog.get_logger()

ENTRY_EXPORT = "default"


class BootSupervisor:
    def __init__(
        self,
        store: ProjectStore,
        bridge: CapabilityBridge,
        *,
        seed: Mapping[str, str] = SEED_TREE,
        os_entry: str = "/boot/bootloader.py",
        app_entry: str = "/boot/kernel.py",
        boot_prefix: str = "/boot/",
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        compile_delay_ms: int = 50,
        max_tokens: int = 8192,
        temperature: float | None = 0.1,
        transpiler: Transpiler | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._bridge = bridge
        self._seed = dict(seed)
        self._entries = {StageName.OS: os_entry, StageName.APP: app_entry}
        self._extensions = tuple(extensions)
        self._compile_delay = compile_delay_ms / 1000
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._transpiler = transpiler
        self._event_bus = event_bus

        self.vfs = VirtualFileSystem(boot_prefix=boot_prefix)
        self._stages = {name: StageStateMachine(name) for name in StageName}
        for machine in self._stages.values():
            machine.on_transition(self._on_transition)
        self._outcomes: dict[StageName, StageOutcome] = {}
        self._loaders: dict[StageName, ModuleLoader] = {}
        self._engine: EvolutionEngine | None = None
        self._warnings: list[str] = []
        self._in_pass = False
        self._reload_pending = False
        self._busy = False

    # ── Public surface ──────────────────────────────────────────

    @property
    def engine(self) -> EvolutionEngine | None:
        return self._engine

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def warnings(self) -> list[str]:
        return list(self._warnings)

    def state(self, stage: StageName) -> StageState:
        return self._stages[stage].state

    def loader(self, stage: StageName) -> ModuleLoader | None:
        """The module registry of the stage's current pass."""
        return self._loaders.get(stage)

    def report(self) -> BootReport:
        stages = []
        for name in StageName:
            outcome = self._outcomes.get(name)
            if outcome is None:
                outcome = StageOutcome(stage=name, state=self._stages[name].state)
            stages.append(outcome)
        return BootReport(stages=stages, warnings=list(self._warnings))

    async def start(self) -> BootReport:
        """Load the persisted tree and run the whole chain."""
        await self._load_tree()
        if await self._bootstrap():
            await self._reload_downstream()
        return self.report()

    async def reload(self) -> BootReport:
        """Recompile and rerun the os and app stages from scratch."""
        if self._stages[StageName.BOOTSTRAP].state == StageState.RUNNING:
            await self._reload_downstream()
        return self.report()

    async def mutate(self, path: str, content: str) -> BootReport:
        """Direct single-path overwrite, then persist and reload."""
        self.vfs.write(path, content)
        await self._emit("vfs.written", {"path": path})
        await self._persist()
        return await self.reload()

    async def evolve(
        self,
        goal: str,
        target_path: str | None = None,
        *,
        protocol: ProtocolName = ProtocolName.SINGLE_TARGET,
    ) -> EvolutionResult:
        """Run one evolution. Failures come back as an unsuccessful result."""
        if self._busy:
            return self._rejected(protocol, EvolutionBusyError("An evolution is already in progress."))
        if self._engine is None:
            return self._rejected(protocol, EvolutionError("Cannot evolve: bootstrap is not running."))

        self._busy = True
        try:
            if protocol == ProtocolName.SINGLE_TARGET:
                result = await self._engine.evolve_single(
                    goal, target_path or self._entries[StageName.APP]
                )
            else:
                result = await self._engine.evolve_batch(goal, target_path)
        except EvolutionError as e:
            return self._rejected(protocol, e)
        finally:
            self._busy = False

        if result.changed_paths or result.deleted_paths:
            result.warnings.extend(await self._persist())
            await self.reload()
        return result

    async def factory_reset(self) -> BootReport:
        """Discard the persisted tree and restart the chain from the seed."""
        logger.warning("factory_reset")
        self._warnings.clear()
        try:
            await self._store.clear()
        except PersistenceError as e:
            self._warn(f"Failed to clear persisted project: {e}")
        self.vfs.replace(self._seed)
        self._loaders.clear()
        self._outcomes.clear()
        self._engine = None
        for machine in self._stages.values():
            await machine.invalidate()
        await self._emit("boot.factory_reset", {})
        if await self._bootstrap():
            await self._reload_downstream()
        return self.report()

    # ── Stage 1: bootstrap ──────────────────────────────────────

    async def _load_tree(self) -> None:
        try:
            files = await self._store.load()
        except PersistenceError as e:
            self._warn(f"Failed to load project, using the built-in seed: {e}")
            files = None
        try:
            self.vfs.replace(files if files is not None else self._seed)
        except InvalidPathError as e:
            self._warn(f"Persisted project is unusable, using the built-in seed: {e}")
            self.vfs.replace(self._seed)

    async def _bootstrap(self) -> bool:
        machine = self._stages[StageName.BOOTSTRAP]
        await machine.transition(StageState.LOADING)
        try:
            await self._bridge.load()
        except CapabilityError as e:
            await self._fail(StageName.BOOTSTRAP, FailureKind.CAPABILITY, e)
            return False

        await machine.transition(StageState.COMPILING)
        service = GenerativeCodeService(self._bridge.get("llm"), max_tokens=self._max_tokens)
        self._engine = EvolutionEngine(
            self.vfs,
            service,
            os_entry=self._entries[StageName.OS],
            app_entry=self._entries[StageName.APP],
            boot_prefix=self.vfs.boot_prefix,
            capabilities=self._bridge.names(),
            temperature=self._temperature,
            event_bus=self._event_bus,
        )
        await machine.transition(StageState.RUNNING)
        self._outcomes[StageName.BOOTSTRAP] = StageOutcome(
            stage=StageName.BOOTSTRAP,
            state=StageState.RUNNING,
            output=f"capabilities: {', '.join(self._bridge.names()) or 'none'}",
        )
        return True

    # ── Stages 2 and 3 ──────────────────────────────────────────

    async def _reload_downstream(self) -> None:
        self._reload_pending = True
        if self._in_pass:
            # A stage mutated the tree mid-pass; the loop below picks it up.
            return
        self._in_pass = True
        try:
            while self._reload_pending:
                self._reload_pending = False
                self._loaders.clear()
                self._outcomes.pop(StageName.APP, None)
                await self._stages[StageName.APP].invalidate()
                await asyncio.sleep(self._compile_delay)
                await self._run_stage(StageName.OS)
        finally:
            self._in_pass = False

    async def _run_stage(self, name: StageName) -> StageOutcome:
        machine = self._stages[name]
        if machine.state == StageState.IDLE:
            await machine.transition(StageState.LOADING)
            if not self._bridge.loaded:
                return await self._fail(
                    name, FailureKind.CAPABILITY,
                    CapabilityError("Capabilities are not loaded"),
                )
        await machine.transition(StageState.COMPILING)

        entry_path = self._entries[name]
        loader = ModuleLoader(
            self.vfs.view(),
            transpiler=self._transpiler,
            capabilities=self._bridge.bindings,
            extensions=self._extensions,
        )
        self._loaders[name] = loader
        try:
            entry = self._compile_entry(loader, entry_path)
        except (LoaderError, EntryPointError) as e:
            return await self._fail(name, FailureKind.COMPILE, e)

        await machine.transition(StageState.RUNNING)
        try:
            output = entry(self._handoff(name))
            if inspect.isawaitable(output):
                output = await output
        except Exception as e:
            return await self._fail(name, FailureKind.RUNTIME, e)

        outcome = StageOutcome(stage=name, state=StageState.RUNNING, output=output)
        self._outcomes[name] = outcome
        return outcome

    def _compile_entry(self, loader: ModuleLoader, entry_path: str):
        try:
            exports = loader.load_entry(entry_path)
        except ModuleNotFound as e:
            if e.specifier == entry_path:
                raise EntryPointError(
                    f"Critical file {entry_path} not found in project."
                ) from e
            raise
        entry = getattr(exports, ENTRY_EXPORT, None)
        if not callable(entry):
            raise EntryPointError(
                f"Entry point '{entry_path}' did not export a callable '{ENTRY_EXPORT}'."
            )
        return entry

    def _handoff(self, name: StageName) -> Handoff:
        launch_next = None
        if name == StageName.OS:
            async def launch_next() -> StageOutcome:
                return await self._run_stage(StageName.APP)

        async def evolve(goal: str, target_path: str | None = None, batch: bool = False):
            protocol = ProtocolName.MULTI_TARGET if batch else ProtocolName.SINGLE_TARGET
            return await self.evolve(goal, target_path, protocol=protocol)

        return Handoff(
            stage=name,
            files=self.vfs.view(),
            mutate=self.mutate,
            evolve=evolve,
            factory_reset=self.factory_reset,
            launch_next=launch_next,
            capabilities=tuple(self._bridge.names()),
        )

    # ── Internals ───────────────────────────────────────────────

    async def _fail(self, name: StageName, kind: FailureKind, error: Exception) -> StageOutcome:
        await self._stages[name].transition(StageState.FAILED)
        diagnostic = str(error) or type(error).__name__
        if kind == FailureKind.RUNTIME and not isinstance(error, LoaderError):
            diagnostic = f"{type(error).__name__}: {diagnostic}"
        outcome = StageOutcome(
            stage=name, state=StageState.FAILED, diagnostic=diagnostic, failure=kind,
        )
        self._outcomes[name] = outcome
        logger.error("stage_failed", stage=name.value, kind=kind.value, error=diagnostic)
        await self._emit("boot.stage_failed", {
            "stage": name.value, "kind": kind.value, "diagnostic": diagnostic,
        })
        return outcome

    async def _persist(self) -> list[str]:
        try:
            await self._store.save(self.vfs.snapshot())
        except PersistenceError as e:
            return [self._warn(f"Failed to save project files: {e}")]
        return []

    def _warn(self, message: str) -> str:
        self._warnings.append(message)
        logger.warning("persistence_warning", message=message)
        return message

    def _rejected(self, protocol: ProtocolName, error: EvolutionError) -> EvolutionResult:
        return EvolutionResult(protocol=protocol, success=False, error=str(error))

    async def _on_transition(self, stage: StageName, old: StageState, new: StageState) -> None:
        logger.debug("stage_transition", stage=stage.value, old=old.value, new=new.value)
        if new == StageState.RUNNING:
            await self._emit("boot.stage_running", {"stage": stage.value})

    async def _emit(self, topic: str, data: dict) -> None:
        if self._event_bus:
            await self._event_bus.emit(topic, data, source="boot_supervisor")
