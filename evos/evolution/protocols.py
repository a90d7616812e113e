"""The two evolution protocols.

single-target: bound to one contextual path, answers with exactly one
    EditAction (UPDATE, CREATE or DELETE).
multi-target: bound only to a goal, answers with an ordered list of
    whole-file replacements. There is no delete primitive.

A protocol turns a request into a prompt and validates the raw service
answer into typed data. It never touches the source tree.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from evos.evolution import prompts
from evos.evolution.models import (
    BatchEdit,
    EditAction,
    EvolutionRequest,
    ProtocolName,
    edit_action_adapter,
)
from evos.exceptions import EvolutionError, SchemaViolationError


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    where = ".".join(str(p) for p in first.get("loc", ())) or "response"
    return f"{where}: {first.get('msg', 'invalid')}"


class _Protocol:
    name: ProtocolName
    tool_name: str
    schema: dict
    temperature: float | None = None

    def __init__(
        self,
        *,
        os_entry: str,
        app_entry: str,
        boot_prefix: str,
        capabilities: Sequence[str] = (),
    ) -> None:
        self._os_entry = os_entry
        self._app_entry = app_entry
        self._boot_prefix = boot_prefix
        self._capabilities = ", ".join(capabilities) or "none"

    @staticmethod
    def _check_goal(goal: str) -> str:
        goal = (goal or "").strip()
        if not goal:
            raise EvolutionError("Cannot evolve: goal must be specified.")
        return goal


class SingleTargetProtocol(_Protocol):
    name = ProtocolName.SINGLE_TARGET
    tool_name = prompts.SINGLE_TARGET_TOOL
    schema = prompts.SINGLE_TARGET_SCHEMA
    temperature = 0.1

    def build_request(
        self, files: Mapping[str, str], goal: str, target_path: str
    ) -> EvolutionRequest:
        if not target_path or not target_path.startswith("/"):
            raise EvolutionError(f"Invalid target path: {target_path!r}")
        return EvolutionRequest(
            goal=self._check_goal(goal),
            target_path=target_path,
            all_paths=sorted(files),
            context_content=files.get(target_path, ""),
        )

    def render(self, request: EvolutionRequest) -> tuple[str, str]:
        system = prompts.SINGLE_TARGET_SYSTEM.format(
            os_entry=self._os_entry,
            app_entry=self._app_entry,
            boot_prefix=self._boot_prefix,
            capabilities=self._capabilities,
            tool_name=self.tool_name,
        )
        user = prompts.SINGLE_TARGET_USER.format(
            file_tree="\n".join(request.all_paths),
            target_path=request.target_path,
            goal=request.goal,
            current_code=request.context_content or "",
        )
        return system, user

    def parse(self, raw: Any) -> EditAction:
        try:
            return edit_action_adapter.validate_python(raw)
        except ValidationError as e:
            raise SchemaViolationError(
                f"Response does not match the edit schema ({_describe(e)})"
            ) from e


class MultiTargetProtocol(_Protocol):
    name = ProtocolName.MULTI_TARGET
    tool_name = prompts.MULTI_TARGET_TOOL
    schema = prompts.MULTI_TARGET_SCHEMA

    def build_request(
        self, files: Mapping[str, str], goal: str, context_path: str | None = None
    ) -> EvolutionRequest:
        context = None
        if context_path is not None:
            context = files.get(context_path, "")
        return EvolutionRequest(
            goal=self._check_goal(goal),
            target_path=context_path,
            all_paths=sorted(files),
            context_content=context,
        )

    def render(self, request: EvolutionRequest) -> tuple[str, str]:
        system = prompts.MULTI_TARGET_SYSTEM.format(
            capabilities=self._capabilities,
            tool_name=self.tool_name,
        )
        context_block = ""
        if request.target_path is not None:
            context_block = prompts.MULTI_TARGET_CONTEXT.format(
                path=request.target_path,
                content=request.context_content or "",
            )
        user = prompts.MULTI_TARGET_USER.format(
            goal=request.goal,
            file_tree="\n".join(request.all_paths),
            context_block=context_block,
        )
        return system, user

    def parse(self, raw: Any) -> BatchEdit:
        try:
            return BatchEdit.model_validate(raw)
        except ValidationError as e:
            raise SchemaViolationError(
                f"Response does not match the batch schema ({_describe(e)})"
            ) from e
