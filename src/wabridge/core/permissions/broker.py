"""Correlates tool-approval requests with later human replies.

A request suspends the backend's tool call on an ``asyncio.Future`` until it is
resolved by id, by a yes/no chat reply (oldest request first), or by
:meth:`PermissionBroker.cancel_all` during teardown. Requests never time out on
their own.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

AFFIRMATIVE_TOKENS = frozenset(
    {"yes", "y", "yeah", "yep", "ok", "okay", "allow", "approve", "approved", "sure", "go", "👍", "✅"}
)
NEGATIVE_TOKENS = frozenset(
    {"no", "n", "nope", "deny", "denied", "reject", "stop", "cancel", "👎", "❌"}
)


class PermissionEventType(str, Enum):
    REQUESTED = "requested"
    RESOLVED = "resolved"


@dataclass
class PendingPermission:
    id: str
    tool_name: str
    description: str
    input: Any
    future: "asyncio.Future[bool]" = field(repr=False)
    origin: Optional[str] = None  # sender whose turn raised the request
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tool_name": self.tool_name,
            "description": self.description,
            "input": self.input,
            "origin": self.origin,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class PermissionEvent:
    """Tagged notification delivered to broker listeners."""

    type: PermissionEventType
    request: PendingPermission
    allowed: Optional[bool] = None


PermissionListener = Callable[[PermissionEvent], Any]


def interpret_reply(text: str) -> Optional[bool]:
    """Map a chat reply to approve (True), deny (False) or unrecognized (None)."""
    words = re.findall(r"[\w']+|[^\w\s]", text.strip().lower())
    if not words:
        return None
    first = words[0]
    if first in AFFIRMATIVE_TOKENS:
        return True
    if first in NEGATIVE_TOKENS:
        return False
    return None


class PermissionBroker:
    """Outstanding permission requests for one bridge session."""

    def __init__(self) -> None:
        self._pending: "OrderedDict[str, PendingPermission]" = OrderedDict()
        self._listeners: List[PermissionListener] = []
        self._listener_tasks: Set["asyncio.Future[Any]"] = set()

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def add_listener(self, listener: PermissionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: PermissionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: PermissionEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._listener_tasks.discard)
                    task.add_done_callback(self._log_listener_failure)
            except Exception as exc:
                logger.error("Permission listener failed: %s", exc)

    @staticmethod
    def _log_listener_failure(task: "asyncio.Future[Any]") -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Permission listener failed: %s", task.exception())

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request_permission(
        self,
        tool_name: str,
        description: str,
        tool_input: Any,
        *,
        origin: Optional[str] = None,
    ) -> bool:
        """Register a request and wait until it is resolved."""
        request = self.register(tool_name, description, tool_input, origin=origin)
        try:
            return await request.future
        except asyncio.CancelledError:
            self._pending.pop(request.id, None)
            raise

    def register(
        self,
        tool_name: str,
        description: str,
        tool_input: Any,
        *,
        origin: Optional[str] = None,
    ) -> PendingPermission:
        """Create a pending request without waiting on it."""
        loop = asyncio.get_running_loop()
        request = PendingPermission(
            id=f"perm_{uuid.uuid4().hex[:12]}",
            tool_name=tool_name,
            description=description,
            input=tool_input,
            future=loop.create_future(),
            origin=origin,
        )
        self._pending[request.id] = request
        logger.info("Permission requested for %s (id=%s)", tool_name, request.id)
        self._notify(PermissionEvent(PermissionEventType.REQUESTED, request))
        return request

    def resolve_permission(self, request_id: str, allowed: bool) -> bool:
        """Resolve one request exactly once; False for unknown or settled ids."""
        request = self._pending.pop(request_id, None)
        if request is None or request.future.done():
            return False
        request.future.set_result(bool(allowed))
        logger.info(
            "Permission %s for %s (id=%s)",
            "granted" if allowed else "denied", request.tool_name, request_id,
        )
        self._notify(PermissionEvent(PermissionEventType.RESOLVED, request, bool(allowed)))
        return True

    def try_resolve_from_message(self, text: str) -> bool:
        """Treat *text* as a yes/no reply to the oldest pending request."""
        if not self._pending:
            return False
        decision = interpret_reply(text)
        if decision is None:
            return False
        oldest_id = next(iter(self._pending))
        return self.resolve_permission(oldest_id, decision)

    def cancel_all(self) -> int:
        """Deny every outstanding request and forget them."""
        cancelled = 0
        for request_id in list(self._pending):
            if self.resolve_permission(request_id, False):
                cancelled += 1
        self._pending.clear()
        if cancelled:
            logger.info("Cancelled %d pending permission request(s)", cancelled)
        return cancelled

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get_pending(self, request_id: str) -> Optional[PendingPermission]:
        return self._pending.get(request_id)

    def list_pending(self) -> List[PendingPermission]:
        return list(self._pending.values())
