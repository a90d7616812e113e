"""The contract each stage hands to the stage it runs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from evos.types import FailureKind, StageName, StageState

if TYPE_CHECKING:
    from evos.evolution.models import EvolutionResult


@dataclass
class StageOutcome:
    """What one stage pass produced: its rendered output or a diagnostic."""

    stage: StageName
    state: StageState
    output: Any = None
    diagnostic: str = ""
    failure: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return self.state == StageState.RUNNING and self.failure is None


@dataclass
class BootReport:
    stages: list[StageOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def outcome(self, stage: StageName) -> StageOutcome | None:
        for o in self.stages:
            if o.stage == stage:
                return o
        return None

    @property
    def ok(self) -> bool:
        return bool(self.stages) and all(o.ok for o in self.stages)


@dataclass(frozen=True)
class Handoff:
    """Immutable handoff passed to a stage's ``default`` entry.

    ``files`` is a live read-only view of the source tree. All writes go
    through ``mutate`` (direct overwrite) or ``evolve`` (generative edit),
    both of which reload the downstream stages afterwards.
    ``launch_next`` compiles and runs the next stage inside its own
    failure boundary; it is None for the last stage.
    """

    stage: StageName
    files: Mapping[str, str]
    mutate: Callable[[str, str], Awaitable[BootReport]]
    evolve: Callable[..., Awaitable["EvolutionResult"]]
    factory_reset: Callable[[], Awaitable[BootReport]]
    launch_next: Callable[[], Awaitable[StageOutcome]] | None = None
    capabilities: tuple[str, ...] = ()
