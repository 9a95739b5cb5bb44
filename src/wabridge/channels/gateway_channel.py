"""GatewayChannel: WhatsApp over an HTTP gateway.

The gateway owns the WhatsApp socket, pairing and credentials. This channel
pushes outbound messages and presence through its REST API and receives
inbound messages and connection updates through the webhook routes in
``web/app.py``.

Gateway endpoints used::

    POST {base_url}/messages      {"to", "text"}          -> {"id"}
    POST {base_url}/presence      {"to", "state"}
    POST {base_url}/groups/join   {"invite_code"}         -> {"jid"}
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import httpx

from ..core.errors import TransportError
from ..core.models import AgentIdentity
from ..core.routing.access import extract_group_invite_code
from ..core.routing.identity import format_message_with_agent_name
from ..core.runtime.dedup import SentMessageTracker
from ..core.runtime.events import AgentEventType, EventBus
from .chunker import MAX_MESSAGE_LENGTH, chunk_message
from .messages import is_within_threshold, parse_gateway_message
from .protocol import MessageHandler

logger = logging.getLogger(__name__)

CHUNK_DELAY_SECONDS = 0.5
MAX_SEND_RETRIES = 3


class GatewayChannel:
    """Transport implementation backed by an HTTP WhatsApp gateway."""

    def __init__(
        self,
        base_url: str,
        identity: AgentIdentity,
        events: EventBus,
        *,
        token: Optional[str] = None,
        process_missed: bool = True,
        missed_threshold_mins: int = 60,
        join_group: Optional[str] = None,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        chunk_delay: float = CHUNK_DELAY_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._identity = identity
        self._events = events
        self._token = token
        self._process_missed = process_missed
        self._missed_threshold_mins = missed_threshold_mins
        self._join_group = join_group
        self._max_message_length = max_message_length
        self._chunk_delay = chunk_delay

        self._client = client
        self._ready = False
        self._started_at = datetime.now(timezone.utc)
        self._sent_ids = SentMessageTracker(ttl_seconds=60.0)
        self._handler: Optional[MessageHandler] = None
        self._inflight: Set[asyncio.Task] = set()
        self._group_address: Optional[str] = None
        self._group_listeners: list = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._ready

    async def start(self) -> None:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._token}"} if self._token else None
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0), headers=headers,
            )
        self._started_at = datetime.now(timezone.utc)
        logger.info("GatewayChannel started (gateway=%s)", self._base_url)

    async def stop(self) -> None:
        self._ready = False
        for task in list(self._inflight):
            task.cancel()
        for task in list(self._inflight):
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._inflight.clear()
        self._sent_ids.clear()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("GatewayChannel stopped")

    def on_message(self, handler: MessageHandler) -> None:
        self._handler = handler

    def on_group_joined(self, listener) -> None:
        """Register ``listener(group_address)`` called after a group join."""
        self._group_listeners.append(listener)

    def get_group_address(self) -> Optional[str]:
        return self._group_address

    # ------------------------------------------------------------------
    # Webhook entry points
    # ------------------------------------------------------------------

    async def handle_connection_update(self, update: Dict[str, Any]) -> None:
        qr = update.get("qr")
        if qr:
            logger.info("Scan the QR code shown by the gateway to authenticate")
            await self._events.emit(AgentEventType.QR, qr=qr)

        connection = update.get("connection")
        if connection == "close":
            self._ready = False
            reason = str(update.get("reason") or "unknown")
            logger.warning("Gateway connection closed: %s", reason)
            await self._events.emit(AgentEventType.DISCONNECTED, reason=reason)
        elif connection == "open":
            logger.info("WhatsApp connection established")
            self._ready = True
            await self._events.emit(AgentEventType.AUTHENTICATED)
            if self._join_group and self._group_address is None:
                try:
                    await self.join_group(self._join_group)
                except TransportError as exc:
                    logger.error("Failed to join group: %s", exc)
                    await self._events.emit(AgentEventType.ERROR, error=str(exc))
            await self._events.emit(AgentEventType.READY)

    async def handle_gateway_message(self, payload: Dict[str, Any]) -> bool:
        """Accept one inbound payload; returns True if it was handed to the handler."""
        message = parse_gateway_message(payload)
        if message is None:
            logger.debug("Gateway payload without text content ignored")
            return False

        if self._sent_ids.consume(message.id):
            logger.debug("Ignoring echo of message sent by this bridge")
            return False

        if message.timestamp < self._started_at:
            if not self._process_missed:
                logger.debug("Ignoring old message (process_missed disabled)")
                return False
            if not is_within_threshold(message, self._missed_threshold_mins):
                logger.debug(
                    "Ignoring old message (outside threshold of %s mins)", self._missed_threshold_mins,
                )
                return False
            logger.info("Processing missed message from %s", message.sender_key)

        preview = message.text[:50] + ("..." if len(message.text) > 50 else "")
        logger.info("Message from %s: %r", message.display_sender, preview)
        await self._events.emit(
            AgentEventType.MESSAGE_RECEIVED,
            id=message.id,
            sender=message.sender_key,
            participant=message.participant,
            text=message.text,
        )

        if self._handler is None:
            logger.warning("No message handler registered, dropping %s", message.id)
            return False
        task = asyncio.create_task(self._handler(message))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return True

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _require_client(self, to: str) -> httpx.AsyncClient:
        if self._client is None or not self._ready:
            raise TransportError("WhatsApp client not ready", destination=to)
        return self._client

    async def send(self, to: str, text: str) -> None:
        """Prefix, chunk and deliver *text*; raises TransportError on failure."""
        self._require_client(to)
        prefixed = format_message_with_agent_name(self._identity, text)
        chunks = chunk_message(prefixed, self._max_message_length)

        for chunk in chunks:
            message_id = await self._post_message(to, chunk)
            if message_id:
                self._sent_ids.add(message_id)
            if len(chunks) > 1:
                await asyncio.sleep(self._chunk_delay)

        await self._events.emit(AgentEventType.RESPONSE_SENT, to=to, text=text, chunks=len(chunks))

    async def _post_message(self, to: str, text: str) -> Optional[str]:
        client = self._require_client(to)
        last_error = "unknown"
        for attempt in range(MAX_SEND_RETRIES):
            try:
                resp = await client.post(f"{self._base_url}/messages", json={"to": to, "text": text})
                if resp.status_code < 400:
                    data = resp.json() if resp.content else {}
                    return str(data.get("id") or "") or None
                last_error = f"HTTP {resp.status_code}"
            except httpx.HTTPError as exc:
                last_error = str(exc) or exc.__class__.__name__
            logger.warning(
                "send failed for %s (attempt %d/%d): %s",
                to, attempt + 1, MAX_SEND_RETRIES, last_error,
            )
            if attempt < MAX_SEND_RETRIES - 1:
                await asyncio.sleep(2 ** attempt)  # 1s, 2s
        raise TransportError(f"Failed to send message: {last_error}", destination=to)

    async def send_typing(self, to: str) -> None:
        client = self._require_client(to)
        try:
            resp = await client.post(
                f"{self._base_url}/presence", json={"to": to, "state": "composing"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to send typing: {exc}", destination=to) from exc
        if resp.status_code >= 400:
            raise TransportError(f"Failed to send typing: HTTP {resp.status_code}", destination=to)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def join_group(self, url_or_code: str) -> str:
        """Join (or look up) a group and switch into group mode."""
        client = self._require_client(url_or_code)
        invite_code = extract_group_invite_code(url_or_code)
        logger.info("Joining group with invite code: %s", invite_code)
        try:
            resp = await client.post(f"{self._base_url}/groups/join", json={"invite_code": invite_code})
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to join group: {exc}") from exc
        if resp.status_code >= 400:
            raise TransportError(f"Failed to join group: HTTP {resp.status_code}")
        group_address = str((resp.json() or {}).get("jid") or "")
        if not group_address:
            raise TransportError("Failed to join group: no group id returned")

        self._group_address = group_address
        logger.info("Connected to group %s; private messages will be ignored", group_address)
        for listener in self._group_listeners:
            listener(group_address)
        return group_address
