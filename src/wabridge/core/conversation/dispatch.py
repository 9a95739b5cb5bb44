"""Message dispatch core.

Pipeline for one inbound message::

    access policy -> permission reply intercept -> targeting
        -> per-sender slot -> command | backend turn -> chunked reply

Permission replies are checked before waiting for the sender's slot: the
turn holding that slot is usually the one blocked on the approval.
"""

from __future__ import annotations

import contextvars
import logging
from typing import Any, Optional

from ...backends.base import Backend
from ...channels.protocol import Transport
from ...infra.config import BridgeConfig
from ..errors import BackendError, TransportError
from ..models import AgentIdentity, InboundMessage, PermissionMode
from ..permissions.broker import PermissionBroker, PermissionEvent, PermissionEventType
from ..permissions.tools import format_permission_prompt
from ..routing.access import AccessPolicy
from ..routing.identity import agent_identity_display
from ..routing.targeting import TargetingParser
from ..runtime.events import AgentEventType, EventBus
from .commands import HELP_TEXT, is_command, parse_command, unknown_command_text
from .queue import SessionQueue
from .window import ConversationWindow

logger = logging.getLogger(__name__)

_current_sender: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "wabridge_current_sender", default=None,
)

_MODE_LABELS = {
    PermissionMode.PLAN: "readonly",
    PermissionMode.NORMAL: "normal",
    PermissionMode.SKIP: "yolo",
}


class DispatchCore:
    """Owns the queue, permission broker and conversation window of one session."""

    def __init__(
        self,
        backend: Backend,
        transport: Transport,
        config: BridgeConfig,
        identity: AgentIdentity,
        events: Optional[EventBus] = None,
        access_policy: Optional[AccessPolicy] = None,
    ) -> None:
        self.backend = backend
        self.transport = transport
        self.config = config
        self.identity = identity
        self.events = events or EventBus()
        self.access_policy = access_policy or AccessPolicy(
            config.whitelist,
            allow_all_group_participants=config.allow_all_group_participants,
        )

        self.window = ConversationWindow(config.history_limit)
        self.queue = SessionQueue()
        self.permissions = PermissionBroker()
        self.targeting = TargetingParser(identity.name)

        self.backend.set_mode(config.mode)
        self.backend.set_permission_callback(self._request_permission)
        self.permissions.add_listener(self._on_permission_event)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_message(self, message: InboundMessage) -> None:
        decision = self.access_policy.evaluate(message)
        if not decision.allowed:
            logger.warning("Blocked message from %s: %s", message.display_sender, decision.reason)
            return

        if self.permissions.pending_count > 0 and self.permissions.try_resolve_from_message(message.text):
            logger.info("Message from %s resolved a pending permission", message.display_sender)
            return

        result = self.targeting.parse(message.text)
        if result.is_targeted:
            text = result.clean_message
            logger.debug("Targeted via %s", result.method.value if result.method else "none")
        elif self.access_policy.group_mode:
            logger.debug("Group message not addressed to %s, ignored", self.identity.name)
            return
        else:
            text = message.text.strip()
        if not text:
            return

        async with self.queue.slot(message.sender_key, message) as acquired:
            if not acquired:
                logger.debug("Dropped queued message %s during shutdown", message.id)
                return
            await self._process(message, text)

    async def _process(self, message: InboundMessage, text: str) -> None:
        try:
            if is_command(text):
                await self._handle_command(message, text)
            else:
                await self._process_with_backend(message, text)
        except Exception as exc:
            logger.error("Error processing message from %s: %s", message.display_sender, exc)
            await self.events.emit(AgentEventType.ERROR, error=str(exc), message_id=message.id)
            await self._reply(message, f"❌ An error occurred: {exc}")

    async def _process_with_backend(self, message: InboundMessage, text: str) -> None:
        try:
            await self.transport.send_typing(message.sender_key)
        except TransportError as exc:
            logger.debug("Typing indicator failed: %s", exc)

        self.window.add_user(message, text)

        token = _current_sender.set(message.sender_key)
        try:
            logger.info("Sending query to backend...")
            response = await self.backend.query(text, self.window.get_history())
        except BackendError as exc:
            logger.warning("Backend failed: %s", exc)
            await self._reply(message, f"❌ Error: {exc}")
            return
        finally:
            _current_sender.reset(token)

        if response.error:
            logger.warning("Backend error: %s", response.error)
            await self._reply(message, f"❌ Error: {response.error}")
            return

        logger.info("Backend response received (%d chars)", len(response.text))
        if response.tools_used:
            logger.debug("Tools used: %s", ", ".join(response.tools_used))
        self.window.add_assistant(response.text)
        await self._reply(message, response.text or "(no response)")

    async def _reply(self, message: InboundMessage, text: str) -> None:
        try:
            await self.transport.send(message.sender_key, text)
        except TransportError as exc:
            logger.error("Failed to reply to %s: %s", message.sender_key, exc)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _handle_command(self, message: InboundMessage, text: str) -> None:
        parsed = parse_command(text)
        if parsed is None:
            return
        cmd = parsed.command

        if cmd == "clear":
            self.window.clear()
            await self._reply(message, "✓ Conversation cleared.")
        elif cmd in ("readonly", "plan"):
            self.set_mode(PermissionMode.PLAN)
            await self._reply(message, "✓ Switched to *read-only* mode. The agent can only read files.")
        elif cmd == "normal":
            self.set_mode(PermissionMode.NORMAL)
            await self._reply(message, "✓ Switched to *normal* mode. The agent will ask permission for writes.")
        elif cmd == "yolo":
            self.set_mode(PermissionMode.SKIP)
            await self._reply(message, "⚠️ Switched to *YOLO* mode. The agent has full access without confirmation!")
        elif cmd == "mode":
            await self._reply(message, f"Current mode: *{_MODE_LABELS[self.config.mode]}*")
        elif cmd == "help":
            await self._reply(message, HELP_TEXT)
        elif cmd == "status":
            await self._reply(message, self.status_text())
        else:
            await self._reply(message, unknown_command_text(cmd))

    def set_mode(self, mode: PermissionMode) -> None:
        self.config.mode = mode
        self.backend.set_mode(mode)
        logger.info("Mode changed to: %s", mode.value)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def _request_permission(self, tool_name: str, description: str, tool_input: Any) -> bool:
        return await self.permissions.request_permission(
            tool_name, description, tool_input, origin=_current_sender.get(),
        )

    async def _on_permission_event(self, event: PermissionEvent) -> None:
        if event.type is not PermissionEventType.REQUESTED:
            return
        request = event.request
        await self.events.emit(AgentEventType.PERMISSION_REQUEST, request=request.to_dict())
        if not request.origin:
            return
        prompt = format_permission_prompt(request.id, request.tool_name, request.description, request.input)
        try:
            await self.transport.send(request.origin, prompt)
        except TransportError as exc:
            logger.error("Failed to deliver permission prompt %s: %s", request.id, exc)

    def resolve_permission(self, request_id: str, allowed: bool) -> bool:
        return self.permissions.resolve_permission(request_id, allowed)

    @property
    def pending_permission_count(self) -> int:
        return self.permissions.pending_count

    # ------------------------------------------------------------------
    # Status / teardown
    # ------------------------------------------------------------------

    def status_text(self) -> str:
        return "\n".join([
            "*Agent Status:*",
            "",
            f"🤖 Agent: {agent_identity_display(self.identity)}",
            f"📁 Working directory: `{self.config.directory}`",
            f"🔐 Mode: {self.config.mode.value}",
            f"🧠 Model: {self.config.model}",
            f"💬 Conversation length: {self.window.length} messages",
            f"⏳ Pending permissions: {self.permissions.pending_count}",
        ])

    def dispose(self) -> None:
        """Deny pending approvals, drop queued work and forget history."""
        self.permissions.cancel_all()
        self.queue.clear()
        self.window.clear()
        logger.info("Dispatch core disposed")
