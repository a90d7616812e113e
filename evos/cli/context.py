"""CLI runtime context — bridges the sync CLI to the async supervisor."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from evos.boot.bindings import default_bridge
from evos.boot.supervisor import BootSupervisor
from evos.config import settings
from evos.events.bus import EventBus
from evos.preview.executor import PreviewExecutor
from evos.vfs.store import create_store


class EvosContext:
    """Singleton runtime context that holds all subsystem instances."""

    _instance: EvosContext | None = None

    def __init__(self) -> None:
        self.event_bus = EventBus()
        self.store = create_store(
            settings.store_backend,
            db_path=settings.db_path,
            json_path=settings.json_store_path,
            key=settings.store_key,
        )
        self.bridge = default_bridge(settings)
        self.supervisor = BootSupervisor(
            self.store,
            self.bridge,
            os_entry=settings.os_entry,
            app_entry=settings.app_entry,
            boot_prefix=settings.boot_critical_prefix,
            extensions=settings.module_extensions,
            compile_delay_ms=settings.compile_delay_ms,
            max_tokens=settings.max_tokens,
            temperature=settings.evolution_temperature,
            event_bus=self.event_bus,
        )
        self.preview = PreviewExecutor(
            allowed_capabilities=settings.preview_allowed_capabilities,
            extensions=settings.module_extensions,
            timeout_s=settings.preview_timeout_s,
            memory_limit_mb=settings.preview_memory_limit_mb,
            event_bus=self.event_bus,
        )

    async def close(self) -> None:
        await self.store.close()

    @classmethod
    def get(cls) -> EvosContext:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        # Already inside a running loop; not expected from the CLI
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    else:
        return asyncio.run(coro)
