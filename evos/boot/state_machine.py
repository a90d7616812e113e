"""Lifecycle of one stage in the bootstrap chain.

A stage starts IDLE and moves to LOADING while the capability bridge is
loaded (bootstrap) or checked (os, app). It then moves to COMPILING for
its entry and the modules that entry requires, and to RUNNING once the
entry has returned. Any of the active states may end in FAILED.

An edit recompiles a RUNNING or FAILED stage by going straight back to
COMPILING without reloading capabilities. Only invalidation returns a
stage to IDLE: the app stage on every downstream reload, and every stage
on factory reset.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Awaitable

from evos.types import StageName, StageState
from evos.exceptions import StageStateError

TransitionCallback = Callable[[StageName, StageState, StageState], Awaitable[None]]

VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.IDLE: {StageState.LOADING},
    StageState.LOADING: {StageState.COMPILING, StageState.FAILED},
    StageState.COMPILING: {StageState.RUNNING, StageState.FAILED},
    StageState.RUNNING: {StageState.COMPILING, StageState.FAILED, StageState.IDLE},
    StageState.FAILED: {StageState.COMPILING, StageState.IDLE},
}


class StageStateMachine:
    """State of a single stage (bootstrap, os or app).

    Rejects transitions outside ``VALID_TRANSITIONS`` with
    ``StageStateError`` and notifies listeners after every change.
    """

    def __init__(self, stage: StageName):
        self.stage = stage
        self._state = StageState.IDLE
        self._listeners: list[TransitionCallback] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> StageState:
        return self._state

    async def transition(self, target: StageState) -> None:
        async with self._lock:
            valid = VALID_TRANSITIONS.get(self._state, set())
            if target not in valid:
                raise StageStateError(
                    f"Cannot transition stage {self.stage.value} "
                    f"from {self._state.value} to {target.value}"
                )
            old = self._state
            self._state = target
        # Notify listeners outside the lock
        for listener in self._listeners:
            await listener(self.stage, old, target)

    async def invalidate(self) -> None:
        """Send a running or failed stage back to IDLE; no-op otherwise."""
        if self._state in (StageState.RUNNING, StageState.FAILED):
            await self.transition(StageState.IDLE)

    def on_transition(self, callback: TransitionCallback) -> None:
        self._listeners.append(callback)
