"""Shared test fixtures — MockLLMProvider for testing without API calls."""

from __future__ import annotations

import pytest

from evos.evolution.service import GenerativeCodeService
from evos.llm.base import BaseLLMProvider, LLMResponse, ToolCall
from evos.vfs.filesystem import VirtualFileSystem
from evos.vfs.seed import SEED_TREE
from evos.vfs.store import ProjectStore


class MockLLMProvider(BaseLLMProvider):
    """LLM provider that returns canned responses. No API calls."""

    def __init__(self, responses: list[LLMResponse] | None = None):
        self._responses = responses or []
        self._call_count = 0
        self.calls: list[dict] = []  # record all calls for assertions

    async def complete(
        self, messages, system=None, tools=None, max_tokens=4096,
        tool_choice=None, temperature=None,
    ):
        self.calls.append({
            "messages": messages,
            "system": system,
            "tools": tools,
            "max_tokens": max_tokens,
            "tool_choice": tool_choice,
            "temperature": temperature,
        })
        if self._call_count < len(self._responses):
            resp = self._responses[self._call_count]
            self._call_count += 1
            return resp
        return LLMResponse(
            content="Done.",
            stop_reason="end_turn",
            input_tokens=10,
            output_tokens=5,
        )


class MemoryProjectStore(ProjectStore):
    """In-memory store; ``fail_on`` names operations that raise."""

    def __init__(self, files: dict[str, str] | None = None, fail_on: set[str] | None = None):
        super().__init__("test-key")
        self.files = dict(files) if files is not None else None
        self.fail_on = fail_on or set()
        self.saves = 0

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            from evos.exceptions import PersistenceError
            raise PersistenceError(f"{op} is broken")

    async def load(self):
        self._check("load")
        return dict(self.files) if self.files is not None else None

    async def save(self, files):
        self._check("save")
        self.saves += 1
        self.files = dict(files)

    async def clear(self):
        self._check("clear")
        self.files = None


def tool_response(name: str, arguments: dict) -> LLMResponse:
    """A response holding exactly one forced tool call."""
    return LLMResponse(
        tool_calls=[ToolCall(id="call_1", name=name, arguments=arguments)],
        stop_reason="tool_use",
        input_tokens=100,
        output_tokens=50,
    )


@pytest.fixture
def mock_llm():
    return MockLLMProvider()


@pytest.fixture
def mock_llm_with_responses():
    def _factory(responses: list[LLMResponse]) -> MockLLMProvider:
        return MockLLMProvider(responses=responses)
    return _factory


@pytest.fixture
def seed_vfs():
    return VirtualFileSystem(SEED_TREE)


@pytest.fixture
def service_with_responses(mock_llm_with_responses):
    def _factory(responses: list[LLMResponse]) -> GenerativeCodeService:
        return GenerativeCodeService(mock_llm_with_responses(responses))
    return _factory


@pytest.fixture
def tool_reply():
    return tool_response


@pytest.fixture
def memory_store():
    def _factory(files=None, fail_on=None) -> MemoryProjectStore:
        return MemoryProjectStore(files, fail_on)
    return _factory
