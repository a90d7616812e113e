"""Capability bridge — the allow-listed bindings modules may require().

Modules never see host objects through globals. A binding is reachable
only when a module calls ``require(name)`` with its registered name.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable

from evos.exceptions import CapabilityError
from evos.types import CapabilityName

_logger = logging.getLogger(__name__)

_MISSING = object()


class _Provider:
    __slots__ = ("factory", "value", "required")

    def __init__(self, factory: Callable[[], Any] | None, value: Any, required: bool) -> None:
        self.factory = factory
        self.value = value
        self.required = required


class CapabilityBridge:
    """Fixed name → binding table, filled in once during bootstrap loading."""

    def __init__(self) -> None:
        self._providers: dict[CapabilityName, _Provider] = {}
        self._bindings: dict[CapabilityName, Any] = {}
        self._loaded = False

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or name.startswith(("/", ".")):
            raise CapabilityError(
                f"Capability name '{name}' would collide with a source path"
            )

    def provide(self, name: CapabilityName, value: Any, *, required: bool = True) -> None:
        """Register a ready binding."""
        self._check_name(name)
        self._providers[name] = _Provider(None, value, required)
        self._loaded = False

    def provide_factory(
        self,
        name: CapabilityName,
        factory: Callable[[], Any],
        *,
        required: bool = True,
    ) -> None:
        """Register a binding built lazily by ``load()``. Factories may be async."""
        self._check_name(name)
        self._providers[name] = _Provider(factory, _MISSING, required)
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> Mapping[CapabilityName, Any]:
        """Resolve every provider. A failing required provider raises."""
        for name, provider in self._providers.items():
            if name in self._bindings:
                continue
            if provider.factory is None:
                self._bindings[name] = provider.value
                continue
            try:
                value = provider.factory()
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                if provider.required:
                    raise CapabilityError(
                        f"Could not load required capability '{name}': {e}"
                    ) from e
                _logger.warning("Optional capability '%s' unavailable: %s", name, e)
                continue
            self._bindings[name] = value
        self._loaded = True
        return self.bindings

    @property
    def bindings(self) -> Mapping[CapabilityName, Any]:
        return MappingProxyType(self._bindings)

    def get(self, name: CapabilityName, default: Any = None) -> Any:
        return self._bindings.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def names(self) -> list[CapabilityName]:
        return sorted(self._bindings)
