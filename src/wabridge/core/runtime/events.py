"""
Event bus for bridge lifecycle and message events.

Observers (web API, CLI, tests) subscribe callbacks; each emitted event is
wrapped in an envelope with an id and timestamp before dispatch.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)

EVENT_HISTORY_LIMIT = 200


class AgentEventType(str, Enum):
    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    MESSAGE_RECEIVED = "message-received"
    RESPONSE_SENT = "response-sent"
    PERMISSION_REQUEST = "permission-request"
    ERROR = "error"
    DISCONNECTED = "disconnected"


@dataclass
class AgentEvent:
    type: AgentEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "payload": dict(self.payload),
        }


# (event) -> None | Awaitable[None]
EventSubscriber = Callable[[AgentEvent], Any]


class EventBus:
    """Fan-out of :class:`AgentEvent` to subscribers."""

    def __init__(self, history_limit: int = EVENT_HISTORY_LIMIT) -> None:
        self._subscribers: List[EventSubscriber] = []
        self._history: Deque[AgentEvent] = deque(maxlen=history_limit)

    def subscribe(self, callback: EventSubscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: EventSubscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def emit(self, event_type: AgentEventType, **payload: Any) -> AgentEvent:
        """Record and dispatch one event. Subscriber failures are logged, not raised."""
        event = AgentEvent(type=event_type, payload=payload)
        self._history.append(event)

        tasks = []
        for callback in list(self._subscribers):
            try:
                res = callback(event)
                if asyncio.iscoroutine(res):
                    tasks.append(res)
            except Exception as e:
                logger.error(f"Error in event subscriber: {e}")

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Error in event subscriber: {result}")
        return event

    def recent(self, limit: int = 50) -> List[AgentEvent]:
        if limit <= 0:
            return []
        return list(self._history)[-limit:]
