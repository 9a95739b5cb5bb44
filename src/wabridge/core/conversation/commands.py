"""Slash command parsing and canned replies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ParsedCommand:
    command: str
    args: str = ""


def is_command(text: str) -> bool:
    return text.strip().startswith("/")


def parse_command(text: str) -> Optional[ParsedCommand]:
    if not is_command(text):
        return None
    parts = text.strip()[1:].split(maxsplit=1)
    if not parts:
        return ParsedCommand(command="")
    args = parts[1].strip() if len(parts) > 1 else ""
    return ParsedCommand(command=parts[0].lower(), args=args)


HELP_TEXT = """*Available Commands:*

/clear - Clear conversation history
/mode - Show current permission mode
/readonly - Switch to read-only mode
/normal - Switch to normal mode (asks for permission)
/yolo - Switch to full access mode (dangerous!)
/status - Show agent status
/help - Show this help message

*Permission Modes:*
• *readonly* - the agent can only read files
• *normal* - the agent asks before writing
• *yolo* - the agent has full access (be careful!)

*Permission Replies:*
Answer a pending request with *yes* or *no*."""


def unknown_command_text(command: str) -> str:
    return f"Unknown command: /{command}\n\nType /help for available commands."
