"""Evolution data model — requests, edit actions and results.

Wire field names follow the generative service contract (``filePath``,
``code``); Python code uses ``path`` and ``content``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from evos.types import new_id


def _absolute(path: str) -> str:
    if not path.startswith("/"):
        raise ValueError(f"path must start with '/': {path!r}")
    return path


class EditKind(str, Enum):
    UPDATE = "UPDATE"
    CREATE = "CREATE"
    DELETE = "DELETE"


class _Edit(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    path: str = Field(alias="filePath")

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return _absolute(v)


class UpdateAction(_Edit):
    action: Literal["UPDATE"] = "UPDATE"
    content: str = Field(alias="code")


class CreateAction(_Edit):
    action: Literal["CREATE"] = "CREATE"
    content: str = Field(alias="code")


class DeleteAction(_Edit):
    action: Literal["DELETE"] = "DELETE"
    content: str = Field(default="", alias="code")

    @field_validator("content")
    @classmethod
    def drop_content(cls, v: str) -> str:
        # Whatever the service sent as code, a delete carries none.
        return ""


EditAction = Annotated[
    Union[UpdateAction, CreateAction, DeleteAction],
    Field(discriminator="action"),
]

edit_action_adapter: TypeAdapter[EditAction] = TypeAdapter(EditAction)


class FileReplacement(BaseModel):
    """One whole-file create-or-update from the multi-target protocol."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    path: str = Field(alias="filePath")
    content: str

    @field_validator("path")
    @classmethod
    def check_path(cls, v: str) -> str:
        return _absolute(v)


class BatchEdit(BaseModel):
    """Multi-target response: a plan, a summary and the replacements."""

    model_config = ConfigDict(extra="forbid")

    thought: str
    summary: str
    changes: list[FileReplacement]

    @field_validator("changes")
    @classmethod
    def _distinct_paths(cls, changes: list[FileReplacement]) -> list[FileReplacement]:
        seen: set[str] = set()
        for change in changes:
            if change.path in seen:
                raise ValueError(f"duplicate path in changes: {change.path}")
            seen.add(change.path)
        return changes


class ProtocolName(str, Enum):
    SINGLE_TARGET = "single-target"
    MULTI_TARGET = "multi-target"


class EvolutionRequest(BaseModel):
    """What is sent to the generative service, before prompt rendering."""

    id: str = Field(default_factory=new_id)
    goal: str
    target_path: str | None = None
    all_paths: list[str] = Field(default_factory=list)
    context_content: str | None = None


class EvolutionResult(BaseModel):
    """Outcome of one evolution call, successful or not."""

    id: str = Field(default_factory=new_id)
    request_id: str = ""
    protocol: ProtocolName
    success: bool = False
    summary: str = ""
    thought: str = ""
    changed_paths: list[str] = Field(default_factory=list)
    deleted_paths: list[str] = Field(default_factory=list)
    error: str = ""
    warnings: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
