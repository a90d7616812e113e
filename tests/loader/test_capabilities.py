"""Tests for the capability bridge."""

import pytest

from evos.exceptions import CapabilityError
from evos.loader.capabilities import CapabilityBridge


@pytest.mark.asyncio
async def test_provide_and_load():
    bridge = CapabilityBridge()
    bridge.provide("ui", "renderer")
    assert not bridge.loaded

    bindings = await bridge.load()

    assert bridge.loaded
    assert bindings["ui"] == "renderer"
    assert "ui" in bridge
    assert bridge.names() == ["ui"]


@pytest.mark.asyncio
async def test_sync_and_async_factories():
    async def make_llm():
        return "llm-client"

    bridge = CapabilityBridge()
    bridge.provide_factory("clock", lambda: "tick")
    bridge.provide_factory("llm", make_llm)
    await bridge.load()

    assert bridge.get("clock") == "tick"
    assert bridge.get("llm") == "llm-client"


@pytest.mark.asyncio
async def test_required_factory_failure_raises():
    def broken():
        raise RuntimeError("no device")

    bridge = CapabilityBridge()
    bridge.provide_factory("device", broken)
    with pytest.raises(CapabilityError, match="device"):
        await bridge.load()
    assert not bridge.loaded


@pytest.mark.asyncio
async def test_optional_factory_failure_is_skipped():
    def broken():
        raise ValueError("no key")

    bridge = CapabilityBridge()
    bridge.provide("ui", "renderer")
    bridge.provide_factory("llm", broken, required=False)
    await bridge.load()

    assert bridge.loaded
    assert "llm" not in bridge
    assert bridge.get("llm") is None
    assert bridge.names() == ["ui"]


def test_bindings_are_read_only():
    bridge = CapabilityBridge()
    with pytest.raises(TypeError):
        bridge.bindings["ui"] = "x"


@pytest.mark.parametrize("name", ["", "/boot/x", "./local", "../up"])
def test_path_like_names_rejected(name):
    with pytest.raises(CapabilityError):
        CapabilityBridge().provide(name, object())
