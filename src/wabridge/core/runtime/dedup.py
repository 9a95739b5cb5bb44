"""Tracks ids of messages this process sent so their echoes are ignored."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable


class SentMessageTracker:
    """Bounded id set with per-entry expiry.

    Entries live in insertion order with their deadline, so expiry and
    overflow both evict from the front.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._deadlines: "OrderedDict[str, float]" = OrderedDict()

    def _evict_expired(self) -> None:
        now = self._clock()
        while self._deadlines:
            message_id, deadline = next(iter(self._deadlines.items()))
            if deadline > now:
                break
            del self._deadlines[message_id]

    def add(self, message_id: str) -> None:
        if not message_id:
            return
        self._evict_expired()
        self._deadlines.pop(message_id, None)
        self._deadlines[message_id] = self._clock() + self.ttl_seconds
        while len(self._deadlines) > self.max_entries:
            self._deadlines.popitem(last=False)

    def consume(self, message_id: str) -> bool:
        """Return True (once) if *message_id* was sent by us."""
        self._evict_expired()
        return self._deadlines.pop(message_id, None) is not None

    def __contains__(self, message_id: object) -> bool:
        self._evict_expired()
        return message_id in self._deadlines

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._deadlines)

    def clear(self) -> None:
        self._deadlines.clear()
