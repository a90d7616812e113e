"""Anthropic Claude provider — the default generative code service client."""

from __future__ import annotations

from typing import Any

import anthropic

from evos.llm.base import BaseLLMProvider, LLMMessage, LLMResponse, ToolCall


class AnthropicProvider(BaseLLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout_s: float = 120.0,
        max_retries: int = 2,
    ):
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout_s, max_retries=max_retries,
        )
        self.model = model

    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        tools: list[dict] | None = None,
        max_tokens: int = 4096,
        tool_choice: dict | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [m.model_dump() for m in messages],
        }
        optional = {
            "system": system,
            "tools": tools,
            "tool_choice": tool_choice,
            "temperature": temperature,
        }
        request.update({k: v for k, v in optional.items() if v is not None})

        message = await self._client.messages.create(**request)
        return self._to_response(message)

    @staticmethod
    def _to_response(message: Any) -> LLMResponse:
        text = "".join(b.text for b in message.content if b.type == "text")
        calls = [
            ToolCall(id=b.id, name=b.name, arguments=dict(b.input or {}))
            for b in message.content
            if b.type == "tool_use"
        ]
        return LLMResponse(
            content=text or None,
            tool_calls=calls,
            stop_reason=message.stop_reason or "",
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )


def create_provider(api_key: str, model: str) -> AnthropicProvider:
    """Capability factory; refuses to build a client without a key."""
    if not api_key:
        raise ValueError("EVOS_ANTHROPIC_API_KEY is not set")
    return AnthropicProvider(api_key=api_key, model=model)
