"""
Conversation window

Memory-resident, bounded record of recent turns used as backend context.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Deque, Iterator, Tuple

from ..models import ConversationEntry, InboundMessage

DEFAULT_MAX_ENTRIES = 50
SUMMARY_TURNS = 5
SUMMARY_PREVIEW_CHARS = 100


class HistoryView:
    """Re-iterable snapshot of formatted turns, oldest first."""

    def __init__(self, entries: Tuple[ConversationEntry, ...]):
        self._entries = entries

    def __iter__(self) -> Iterator[str]:
        for entry in self._entries:
            role = "User" if entry.role == "user" else "Assistant"
            yield f"{role}: {entry.content}"

    def __len__(self) -> int:
        return len(self._entries)


class ConversationWindow:
    """
    Conversation window

    Keeps at most ``max_entries`` turns; the oldest turns are dropped first.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: Deque[ConversationEntry] = deque(maxlen=max_entries)

    def add_user(self, message: InboundMessage, text: str | None = None) -> None:
        """Record a user turn; *text* overrides the message text (targeting prefix removed)."""
        content = message.text if text is None else text
        self._entries.append(
            ConversationEntry(role="user", content=content, timestamp=message.timestamp)
        )

    def add_assistant(self, text: str) -> None:
        self._entries.append(
            ConversationEntry(role="assistant", content=text, timestamp=datetime.now(timezone.utc))
        )

    def get_history(self) -> HistoryView:
        return HistoryView(tuple(self._entries))

    def get_summary(self) -> str:
        """Short preview of the last few turns for status display."""
        if not self._entries:
            return "No previous conversation."

        lines = []
        for entry in list(self._entries)[-SUMMARY_TURNS:]:
            who = "You" if entry.role == "user" else "Assistant"
            content = entry.content[:SUMMARY_PREVIEW_CHARS]
            if len(entry.content) > SUMMARY_PREVIEW_CHARS:
                content += "..."
            lines.append(f"{who}: {content}")
        return "\n".join(lines)

    def entries(self) -> Tuple[ConversationEntry, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def length(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
