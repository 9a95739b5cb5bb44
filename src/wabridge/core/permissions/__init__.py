"""Tool-approval correlation."""

from .broker import (
    PendingPermission,
    PermissionBroker,
    PermissionEvent,
    PermissionEventType,
    interpret_reply,
)
from .tools import ToolKind, format_permission_prompt, format_tool_input, is_destructive_tool

__all__ = [
    "PendingPermission",
    "PermissionBroker",
    "PermissionEvent",
    "PermissionEventType",
    "ToolKind",
    "format_permission_prompt",
    "format_tool_input",
    "interpret_reply",
    "is_destructive_tool",
]
