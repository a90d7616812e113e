"""Structured-decoding client for the generative code service.

The provider is forced to answer through a single tool whose input
schema is the expected output shape. Anything else (plain text, no
tool call, a different tool, an empty payload) is a schema violation;
free-form text is never parsed heuristically.
"""

from __future__ import annotations

import logging
from typing import Any

from evos.exceptions import GenerativeServiceError, SchemaViolationError
from evos.llm.base import BaseLLMProvider, LLMMessage

_logger = logging.getLogger(__name__)


class GenerativeCodeService:
    def __init__(
        self,
        llm: BaseLLMProvider | None,
        max_tokens: int = 8192,
    ) -> None:
        self._llm = llm
        self._max_tokens = max_tokens

    @property
    def available(self) -> bool:
        return self._llm is not None

    async def generate(
        self,
        *,
        system: str,
        prompt: str,
        tool_name: str,
        schema: dict,
        description: str = "",
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """Return the raw tool input the service produced for ``tool_name``."""
        if self._llm is None:
            raise GenerativeServiceError(
                "Generative code service unavailable (no llm capability loaded)"
            )

        tool = {
            "name": tool_name,
            "description": description or f"Submit the result as {tool_name}.",
            "input_schema": schema,
        }
        try:
            response = await self._llm.complete(
                messages=[LLMMessage(role="user", content=prompt)],
                system=system,
                tools=[tool],
                tool_choice={"type": "tool", "name": tool_name},
                max_tokens=self._max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            raise GenerativeServiceError(f"Generative service call failed: {e}") from e

        calls = [c for c in response.tool_calls if c.name == tool_name]
        if not calls:
            raise SchemaViolationError(
                "Received an empty or free-form response from the generative service"
            )
        if len(calls) > 1:
            raise SchemaViolationError(f"Expected one {tool_name} call, got {len(calls)}")

        arguments = calls[0].arguments
        if not arguments:
            raise SchemaViolationError("Received an empty response from the generative service")

        _logger.debug(
            "Generative service answered (%d in / %d out tokens)",
            response.input_tokens,
            response.output_tokens,
        )
        return arguments
