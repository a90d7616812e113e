"""Event Bus — async pub/sub for boot, vfs, evolution and preview events.

Patterns use shell-style wildcards: "boot.*" receives
"boot.stage_running" and "boot.stage_failed"; "*" receives everything.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections import deque
from collections.abc import Iterator
from datetime import datetime
from typing import Any, Callable, Awaitable

from pydantic import BaseModel, Field

from evos.types import new_id

EventHandler = Callable[["Event"], Awaitable[None]]

_logger = logging.getLogger(__name__)


class Event(BaseModel):
    id: str = Field(default_factory=new_id)
    topic: str
    data: dict[str, Any] = Field(default_factory=dict)
    source: str = ""
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class EventBus:
    """Fan-out of emitted events to every handler whose pattern matches.

    A failing handler is logged and never affects the emitter or the
    other handlers. The last ``history_limit`` events are retained.
    """

    def __init__(self, history_limit: int = 500) -> None:
        self._subscriptions: list[tuple[str, EventHandler]] = []
        self._history: deque[Event] = deque(maxlen=history_limit)

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        self._subscriptions.append((pattern, handler))

    def unsubscribe(self, pattern: str, handler: EventHandler) -> None:
        try:
            self._subscriptions.remove((pattern, handler))
        except ValueError:
            pass

    def _handlers_for(self, topic: str) -> Iterator[EventHandler]:
        for pattern, handler in list(self._subscriptions):
            if fnmatch.fnmatchcase(topic, pattern):
                yield handler

    async def emit(self, topic: str, data: dict | None = None, source: str = "") -> Event:
        event = Event(topic=topic, data=data or {}, source=source)
        self._history.append(event)

        handlers = list(self._handlers_for(topic))
        if handlers:
            results = await asyncio.gather(
                *(h(event) for h in handlers), return_exceptions=True
            )
            for result in results:
                if isinstance(result, Exception):
                    _logger.warning("Event handler for '%s' failed: %s", topic, result)
        return event

    def history(self, topic_filter: str = "*", limit: int = 50) -> list[Event]:
        """Most recent matching events, newest first."""
        matching = [e for e in self._history if fnmatch.fnmatchcase(e.topic, topic_filter)]
        return matching[::-1][:limit]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def topics(self) -> list[str]:
        return sorted({e.topic for e in self._history})
