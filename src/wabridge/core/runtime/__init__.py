"""Core runtime helpers."""

from .dedup import SentMessageTracker
from .events import AgentEvent, AgentEventType, EventBus

__all__ = [
    "AgentEvent",
    "AgentEventType",
    "EventBus",
    "SentMessageTracker",
]
