"""Transport protocol definition."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol

from ..core.models import InboundMessage

MessageHandler = Callable[[InboundMessage], Awaitable[None]]


class Transport(Protocol):
    """Chat transport consumed by the dispatch layer."""

    @property
    def ready(self) -> bool:
        """Whether send/typing calls can succeed right now."""
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    def on_message(self, handler: MessageHandler) -> None:
        """Register the inbound message handler."""
        ...

    async def send(self, to: str, text: str) -> None:
        """Deliver *text* to *to*; raises TransportError on failure."""
        ...

    async def send_typing(self, to: str) -> None:
        ...

    def get_group_address(self) -> Optional[str]:
        """Joined group address in group mode, else None."""
        ...
