"""AI backend contract."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from ..core.models import BackendResponse, PermissionCallback, PermissionMode
from ..core.permissions.tools import is_destructive_tool

logger = logging.getLogger(__name__)


class Backend(ABC):
    """Answers prompts and asks for approval before destructive tool calls."""

    def __init__(self, model: str, mode: PermissionMode = PermissionMode.NORMAL):
        self.model = model
        self.mode = mode
        self._permission_callback: Optional[PermissionCallback] = None

    def set_mode(self, mode: PermissionMode) -> None:
        self.mode = mode
        logger.info("Permission mode changed to: %s", mode.value)

    def set_permission_callback(self, callback: PermissionCallback) -> None:
        self._permission_callback = callback

    async def check_tool_permission(self, tool_name: str, description: str, tool_input: Any) -> bool:
        """Decide whether a tool call may run under the current mode."""
        if self.mode is PermissionMode.SKIP:
            return True
        if not is_destructive_tool(tool_name):
            return True
        if self.mode is PermissionMode.PLAN:
            logger.info("Denied %s in plan mode", tool_name)
            return False
        if self._permission_callback is None:
            logger.warning("No permission callback registered, denying %s", tool_name)
            return False
        return await self._permission_callback(tool_name, description, tool_input)

    @abstractmethod
    async def query(self, prompt: str, history: Iterable[str] = ()) -> BackendResponse:
        """Answer one turn.

        Recoverable failures come back as ``BackendResponse.error``; a reply
        that cannot be interpreted at all raises :class:`BackendError`.
        """

    async def stop(self) -> None:
        """Release backend resources."""
