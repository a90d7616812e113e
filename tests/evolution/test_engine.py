"""Tests for the evolution engine — applying edits to the source tree."""

import pytest

from evos.events.bus import EventBus
from evos.evolution.engine import EvolutionEngine
from evos.evolution.models import CreateAction, DeleteAction, ProtocolName, UpdateAction
from evos.exceptions import (
    GenerativeServiceError,
    ProtectedPathError,
    SchemaViolationError,
)
from evos.evolution.service import GenerativeCodeService


@pytest.fixture
def engine_for(seed_vfs, service_with_responses):
    def _factory(*responses, bus=None) -> EvolutionEngine:
        return EvolutionEngine(seed_vfs, service_with_responses(list(responses)), event_bus=bus)
    return _factory


@pytest.mark.asyncio
async def test_single_update(engine_for, seed_vfs, tool_reply):
    before = seed_vfs.snapshot()
    engine = engine_for(tool_reply("apply_edit", {
        "action": "UPDATE", "filePath": "/main.py", "code": "def default():\n    print('new')\n",
    }))

    result = await engine.evolve_single("print something new", "/main.py")

    assert result.success
    assert result.protocol == ProtocolName.SINGLE_TARGET
    assert result.changed_paths == ["/main.py"]
    assert seed_vfs["/main.py"].endswith("print('new')\n")
    after = seed_vfs.snapshot()
    assert {p for p in after if after[p] != before[p]} == {"/main.py"}


@pytest.mark.asyncio
async def test_single_create(engine_for, seed_vfs, tool_reply):
    engine = engine_for(tool_reply("apply_edit", {
        "action": "CREATE", "filePath": "/components/clock.py", "code": "now = 'noon'\n",
    }))
    result = await engine.evolve_single("add a clock", "/components/clock.py")

    assert result.changed_paths == ["/components/clock.py"]
    assert seed_vfs["/components/clock.py"] == "now = 'noon'\n"
    assert len(seed_vfs) == 7


@pytest.mark.asyncio
async def test_single_delete(engine_for, seed_vfs, tool_reply):
    engine = engine_for(tool_reply("apply_edit", {"action": "DELETE", "filePath": "/main.py"}))
    result = await engine.evolve_single("remove the preview", "/main.py")

    assert result.deleted_paths == ["/main.py"]
    assert "/main.py" not in seed_vfs


@pytest.mark.asyncio
async def test_unknown_action_leaves_tree_unchanged(engine_for, seed_vfs, tool_reply):
    before = seed_vfs.snapshot()
    engine = engine_for(tool_reply("apply_edit", {
        "action": "PATCH", "filePath": "/main.py", "code": "x",
    }))
    with pytest.raises(SchemaViolationError):
        await engine.evolve_single("patch it", "/main.py")
    assert seed_vfs.snapshot() == before


@pytest.mark.asyncio
async def test_free_form_answer_leaves_tree_unchanged(seed_vfs, mock_llm):
    before = seed_vfs.snapshot()
    engine = EvolutionEngine(seed_vfs, GenerativeCodeService(mock_llm))
    with pytest.raises(SchemaViolationError):
        await engine.evolve_single("do anything", "/main.py")
    assert seed_vfs.snapshot() == before


@pytest.mark.asyncio
async def test_boot_critical_delete_refused(engine_for, seed_vfs, tool_reply):
    engine = engine_for(tool_reply("apply_edit", {
        "action": "DELETE", "filePath": "/boot/kernel.py",
    }))
    with pytest.raises(ProtectedPathError):
        await engine.evolve_single("remove the kernel", "/boot/kernel.py")
    assert "/boot/kernel.py" in seed_vfs


@pytest.mark.asyncio
async def test_boot_critical_update_allowed(engine_for, seed_vfs, tool_reply):
    engine = engine_for(tool_reply("apply_edit", {
        "action": "UPDATE", "filePath": "/boot/kernel.py", "code": "def default(h):\n    return 'x'\n",
    }))
    result = await engine.evolve_single("simplify", "/boot/kernel.py")
    assert result.changed_paths == ["/boot/kernel.py"]


def test_apply_edit_is_idempotent(seed_vfs):
    engine = EvolutionEngine(seed_vfs, GenerativeCodeService(None))
    update = UpdateAction(path="/main.py", content="x = 1\n")
    assert engine.apply_edit(update) == (["/main.py"], [])
    snap = seed_vfs.snapshot()
    assert engine.apply_edit(update) == ([], [])
    assert seed_vfs.snapshot() == snap

    delete = DeleteAction(path="/main.py")
    assert engine.apply_edit(delete) == ([], ["/main.py"])
    assert engine.apply_edit(delete) == ([], [])

    create = CreateAction(path="/main.py", content="y = 2\n")
    assert engine.apply_edit(create) == (["/main.py"], [])


@pytest.mark.asyncio
async def test_batch_applies_all_changes(engine_for, seed_vfs, tool_reply):
    before = seed_vfs.snapshot()
    engine = engine_for(tool_reply("apply_changes", {
        "thought": "touch two files",
        "summary": "Added a clock and reworded the greeting.",
        "changes": [
            {"filePath": "/components/clock.py", "content": "now = 'noon'\n"},
            {"filePath": "/components/greeting.py", "content": "def render(n):\n    return n\n"},
        ],
    }))

    result = await engine.evolve_batch("add a clock", "/boot/kernel.py")

    assert result.success
    assert result.protocol == ProtocolName.MULTI_TARGET
    assert result.summary == "Added a clock and reworded the greeting."
    assert result.thought == "touch two files"
    assert sorted(result.changed_paths) == ["/components/clock.py", "/components/greeting.py"]
    after = seed_vfs.snapshot()
    untouched = set(before) - {"/components/greeting.py"}
    assert all(after[p] == before[p] for p in untouched)


@pytest.mark.asyncio
async def test_batch_empty_changes_is_a_noop(engine_for, seed_vfs, tool_reply):
    before = seed_vfs.snapshot()
    engine = engine_for(tool_reply("apply_changes", {
        "thought": "nothing to do", "summary": "", "changes": [],
    }))
    result = await engine.evolve_batch("be vague")

    assert result.success
    assert result.changed_paths == []
    assert "No changes were made" in result.summary
    assert seed_vfs.snapshot() == before


@pytest.mark.asyncio
async def test_batch_duplicate_paths_rejected(engine_for, seed_vfs, tool_reply):
    before = seed_vfs.snapshot()
    engine = engine_for(tool_reply("apply_changes", {
        "thought": "t", "summary": "s",
        "changes": [
            {"filePath": "/main.py", "content": "a"},
            {"filePath": "/main.py", "content": "b"},
        ],
    }))
    with pytest.raises(SchemaViolationError):
        await engine.evolve_batch("conflict")
    assert seed_vfs.snapshot() == before


@pytest.mark.asyncio
async def test_no_llm_fails_without_touching_tree(seed_vfs):
    before = seed_vfs.snapshot()
    engine = EvolutionEngine(seed_vfs, GenerativeCodeService(None))
    with pytest.raises(GenerativeServiceError):
        await engine.evolve_batch("anything")
    assert seed_vfs.snapshot() == before


@pytest.mark.asyncio
async def test_events_and_history(engine_for, tool_reply):
    bus = EventBus()
    engine = engine_for(
        tool_reply("apply_edit", {"action": "CREATE", "filePath": "/x.py", "code": ""}),
        bus=bus,
    )
    await engine.evolve_single("make x", "/x.py")
    with pytest.raises(SchemaViolationError):
        await engine.evolve_single("again", "/x.py")  # no responses left

    topics = [e.topic for e in reversed(bus.history("evolution.*"))]
    assert topics == [
        "evolution.started", "evolution.applied",
        "evolution.started", "evolution.failed",
    ]
    history = engine.history()
    assert [r.success for r in history] == [False, True]


@pytest.mark.asyncio
async def test_single_target_sends_configured_temperature(seed_vfs, mock_llm_with_responses, tool_reply):
    llm = mock_llm_with_responses([tool_reply("apply_edit", {"action": "DELETE", "filePath": "/x.py"})])
    engine = EvolutionEngine(seed_vfs, GenerativeCodeService(llm), temperature=0.4)
    await engine.evolve_single("drop x", "/x.py")
    assert llm.calls[0]["temperature"] == 0.4
