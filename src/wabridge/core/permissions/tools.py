"""Tool kinds and approval prompt formatting."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Mapping


class ToolKind(str, Enum):
    WRITE = "Write"
    EDIT = "Edit"
    BASH = "Bash"
    READ = "Read"
    NOTEBOOK_EDIT = "NotebookEdit"
    TODO_WRITE = "TodoWrite"
    OTHER = "other"

    @classmethod
    def from_name(cls, tool_name: str) -> "ToolKind":
        for kind in cls:
            if kind is not cls.OTHER and kind.value == tool_name:
                return kind
        return cls.OTHER


DESTRUCTIVE_TOOLS = frozenset(
    {ToolKind.WRITE, ToolKind.EDIT, ToolKind.BASH, ToolKind.NOTEBOOK_EDIT, ToolKind.TODO_WRITE}
)

CONTENT_PREVIEW_CHARS = 200
DEFAULT_PREVIEW_CHARS = 500


def is_destructive_tool(tool_name: str) -> bool:
    return ToolKind.from_name(tool_name) in DESTRUCTIVE_TOOLS


def format_tool_input(tool_name: str, tool_input: Any) -> str:
    """Render a tool input for a human approval prompt."""
    if not isinstance(tool_input, Mapping):
        return str(tool_input)

    kind = ToolKind.from_name(tool_name)
    if kind is ToolKind.WRITE:
        content = str(tool_input.get("content"))[:CONTENT_PREVIEW_CHARS]
        return f"File: {tool_input.get('file_path')}\nContent: {content}..."
    if kind is ToolKind.EDIT:
        return (
            f"File: {tool_input.get('file_path')}\n"
            f"Old: {tool_input.get('old_string')}\n"
            f"New: {tool_input.get('new_string')}"
        )
    if kind is ToolKind.BASH:
        return f"Command: {tool_input.get('command')}"
    if kind is ToolKind.READ:
        return f"File: {tool_input.get('file_path')}"
    return json.dumps(tool_input, indent=2, ensure_ascii=False, default=str)[:DEFAULT_PREVIEW_CHARS]


def format_permission_prompt(request_id: str, tool_name: str, description: str, tool_input: Any) -> str:
    lines = [
        "🔐 *Permission Request*",
        "",
        f"Tool: *{tool_name}*",
    ]
    if description:
        lines.append(description)
    lines.extend([
        "",
        format_tool_input(tool_name, tool_input),
        "",
        f"Reply *yes* to allow or *no* to deny. (id: {request_id})",
    ])
    return "\n".join(lines)
