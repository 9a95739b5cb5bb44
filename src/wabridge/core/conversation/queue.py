"""Per-sender exclusive execution slots.

Each sender key owns at most one executing task. Later arrivals wait in FIFO
order until the current owner calls :meth:`SessionQueue.release`, which hands
the slot directly to the next waiter. Keys are dropped as soon as nobody holds
or waits for them.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Deque, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class _SenderQueueState:
    executing: bool = False
    waiting: Deque[Tuple[Any, "asyncio.Future[bool]"]] = field(default_factory=deque)


class SessionQueue:
    """Mutex-per-key with explicit ownership hand-off."""

    def __init__(self) -> None:
        self._states: Dict[str, _SenderQueueState] = {}

    async def enqueue(self, key: str, task: Any = None) -> bool:
        """Wait for *key*'s exclusive turn.

        Returns True once the caller owns the slot (it must then call
        :meth:`release`), or False when the queue was cleared before the
        turn came; in that case the caller must not run its work.
        """
        state = self._states.get(key)
        if state is None:
            self._states[key] = _SenderQueueState(executing=True)
            return True

        loop = asyncio.get_running_loop()
        waiter: "asyncio.Future[bool]" = loop.create_future()
        item = (task, waiter)
        state.waiting.append(item)
        logger.debug("Queued task for %s (waiting=%d)", key, len(state.waiting))
        try:
            return await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled() and waiter.result():
                # Slot was already handed over; pass it on.
                self.release(key)
            else:
                current = self._states.get(key)
                if current is not None and item in current.waiting:
                    current.waiting.remove(item)
            raise

    def release(self, key: str) -> None:
        """Finish the current task for *key* and wake the next waiter."""
        state = self._states.get(key)
        if state is None or not state.executing:
            return
        while state.waiting:
            _task, waiter = state.waiting.popleft()
            if not waiter.done():
                waiter.set_result(True)
                return
        del self._states[key]

    @asynccontextmanager
    async def slot(self, key: str, task: Any = None) -> AsyncIterator[bool]:
        """
        Usage:
            async with queue.slot(sender) as acquired:
                if acquired:
                    ...
        """
        acquired = await self.enqueue(key, task)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)

    def clear(self) -> None:
        """Discard every waiter without running it and forget idle keys.

        A key whose task is still executing stays registered (with no
        waiters) until its owner calls :meth:`release`, so later arrivals
        keep waiting behind it.
        """
        discarded = 0
        for key in list(self._states):
            state = self._states[key]
            for _task, waiter in state.waiting:
                if not waiter.done():
                    waiter.set_result(False)
                    discarded += 1
            state.waiting.clear()
            if not state.executing:
                del self._states[key]
        if discarded:
            logger.info("Session queue cleared, %d waiting task(s) discarded", discarded)

    def peek(self, key: str) -> Optional[Any]:
        """Return the next waiting task for *key* without removing it."""
        state = self._states.get(key)
        if state is None or not state.waiting:
            return None
        return state.waiting[0][0]

    def is_busy(self, key: str) -> bool:
        state = self._states.get(key)
        return bool(state and state.executing)

    def has_queued(self, key: str) -> bool:
        return self.queue_size(key) > 0

    def queue_size(self, key: str) -> int:
        state = self._states.get(key)
        return len(state.waiting) if state else 0

    def __len__(self) -> int:
        return len(self._states)
