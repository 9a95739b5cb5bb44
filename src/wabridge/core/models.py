"""Message and conversation models passed between the bridge layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InboundMessage:
    """A message delivered by the chat transport."""

    id: str  # transport delivery id
    sender_key: str  # chat address used to serialize processing
    text: str
    timestamp: datetime = field(default_factory=_utcnow)
    participant: Optional[str] = None  # group sender address
    is_self_originated: bool = False

    @property
    def is_group_message(self) -> bool:
        return self.sender_key.endswith("@g.us")

    @property
    def display_sender(self) -> str:
        return self.participant or self.sender_key


@dataclass(frozen=True)
class ConversationEntry:
    """One turn in a conversation window."""

    role: str  # "user" | "assistant"
    content: str
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class AgentIdentity:
    """Outbound prefix identity; fixed for the process lifetime."""

    name: str
    host: str
    folder: str


class TargetingMethod(str, Enum):
    MENTION = "mention"
    GENERIC = "generic"
    SLASH = "slash"


@dataclass(frozen=True)
class TargetingResult:
    is_targeted: bool
    clean_message: str
    method: Optional[TargetingMethod] = None


class PermissionMode(str, Enum):
    PLAN = "plan"
    NORMAL = "normal"
    SKIP = "dangerously-skip-permissions"


@dataclass
class BackendResponse:
    """Result of one backend query."""

    text: str = ""
    tools_used: List[str] = field(default_factory=list)
    error: Optional[str] = None


PermissionCallback = Callable[[str, str, Any], Awaitable[bool]]
