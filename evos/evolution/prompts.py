"""Prompt templates and output schemas for the two evolution protocols."""

from __future__ import annotations

SINGLE_TARGET_SYSTEM = """\
You are an expert Python developer architecting a self-evolving application.
Your task is to achieve the user's GOAL by modifying the project's source tree.
The application has an immutable bootstrap, an OS layer and an application layer.
You are modifying the OS and application layers.

CRITICAL SYSTEM FILES:
- {os_entry}: the OS layer. It launches the application layer. Modifying it is powerful but risky.
- {app_entry}: the application layer, the primary user-facing part of the system.

Every module is plain Python executed as a module body. Modules import each
other with require("relative/or/absolute/path") and receive host services with
require("<capability>"). Available capabilities: {capabilities}.
Normal Python import statements work for the standard library only.
A stage entry must define a callable named `default` taking one handoff argument.

You have three actions available: UPDATE, CREATE or DELETE a single file.
Files under {boot_prefix} can never be deleted.

Respond only by calling the `{tool_name}` tool.
For UPDATE or CREATE, `code` must be the complete source of the file.
For DELETE, omit `code`. All paths start with '/'.
"""

SINGLE_TARGET_USER = """\
PROJECT FILE TREE:
---
{file_tree}
---
USER'S GOAL (in context of '{target_path}'): {goal}
---
CURRENT CODE OF '{target_path}':
---
{current_code}
---
"""

MULTI_TARGET_SYSTEM = """\
You are an expert Python programmer building a self-evolving application.
Your task is to modify the application's source code based on a user's request.
You have access to the application's source tree.

Analyze the user's prompt, the list of all files and the content of the active file.
Decide which file(s) need to change. You may change one or more files, and you
may create new ones; files cannot be deleted.
Modules import each other with require("path") and receive host services with
require("<capability>"). Available capabilities: {capabilities}.

Respond only by calling the `{tool_name}` tool with your plan, a short summary
for the user and the full updated content of every file you change.
"""

MULTI_TARGET_USER = """\
USER PROMPT:
---
{goal}
---

ALL FILE PATHS:
---
{file_tree}
---
{context_block}"""

MULTI_TARGET_CONTEXT = """\

ACTIVE FILE CONTENT for {path}:
---
{content}
---
"""


SINGLE_TARGET_TOOL = "apply_edit"
MULTI_TARGET_TOOL = "apply_changes"

SINGLE_TARGET_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "action": {"type": "string", "enum": ["UPDATE", "CREATE", "DELETE"]},
        "filePath": {"type": "string"},
        "code": {"type": "string"},
    },
    "required": ["action", "filePath"],
    "additionalProperties": False,
}

MULTI_TARGET_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "thought": {
            "type": "string",
            "description": "A brief step-by-step plan of what you will do.",
        },
        "summary": {
            "type": "string",
            "description": "A concise summary of the changes, shown to the user.",
        },
        "changes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "filePath": {"type": "string"},
                    "content": {"type": "string"},
                },
                "required": ["filePath", "content"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["thought", "summary", "changes"],
    "additionalProperties": False,
}
