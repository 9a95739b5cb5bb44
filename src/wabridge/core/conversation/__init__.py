"""Per-sender serialization, conversation window and dispatch."""

from .commands import ParsedCommand, is_command, parse_command
from .dispatch import DispatchCore
from .queue import SessionQueue
from .window import ConversationWindow, HistoryView

__all__ = [
    "ConversationWindow",
    "DispatchCore",
    "HistoryView",
    "ParsedCommand",
    "SessionQueue",
    "is_command",
    "parse_command",
]
