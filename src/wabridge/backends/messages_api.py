"""Backend speaking the Anthropic-compatible ``/v1/messages`` HTTP API.

This backend sends one request per turn and executes no tools itself:
``tool_use`` blocks in a reply are only reported in
``BackendResponse.tools_used``. Approval through
:meth:`Backend.check_tool_permission` applies to backends that run tools
locally.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..core.errors import BackendError
from ..core.models import BackendResponse, PermissionMode
from .base import Backend

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.anthropic.com"
API_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


def compose_prompt(prompt: str, history: Iterable[str]) -> str:
    """Prefix *prompt* with earlier turns.

    The window already holds the current user turn as its last entry; it is
    not repeated in the context block.
    """
    turns = list(history)
    if turns and turns[-1] == f"User: {prompt}":
        turns = turns[:-1]
    if not turns:
        return prompt
    lines = ["Previous conversation:", *turns, "", f"Current message: {prompt}"]
    return "\n".join(lines)


class MessagesApiBackend(Backend):
    """One request per turn, history carried in the prompt."""

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        mode: PermissionMode = PermissionMode.NORMAL,
        api_base: str = DEFAULT_API_BASE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        system_prompt: Optional[str] = None,
        system_prompt_append: Optional[str] = None,
        directory: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model, mode)
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/v1/messages"
        self.max_tokens = max_tokens
        self._system_prompt = self._build_system_prompt(system_prompt, system_prompt_append, directory)
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(300.0, connect=10.0))

    @staticmethod
    def _build_system_prompt(
        system_prompt: Optional[str],
        system_prompt_append: Optional[str],
        directory: Optional[str],
    ) -> str:
        parts: List[str] = []
        if system_prompt:
            parts.append(system_prompt)
        else:
            parts.append("You are a helpful assistant replying over WhatsApp. Keep answers concise.")
            if directory:
                parts.append(f"Working directory: {directory}")
        if system_prompt_append:
            parts.append(system_prompt_append)
        return "\n\n".join(parts)

    def _mode_note(self) -> str:
        if self.mode is PermissionMode.PLAN:
            return "\n\nYou are in read-only mode: describe changes instead of making them."
        return ""

    async def query(self, prompt: str, history: Iterable[str] = ()) -> BackendResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": self._system_prompt + self._mode_note(),
            "messages": [{"role": "user", "content": compose_prompt(prompt, history)}],
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }
        try:
            resp = await self._client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Backend request failed: %s", exc)
            return BackendResponse(error=f"backend unreachable: {exc}")

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            detail = (data.get("error") or {}).get("message") if isinstance(data, dict) else None
            logger.warning("Backend returned HTTP %s: %s", resp.status_code, detail)
            return BackendResponse(error=detail or f"HTTP {resp.status_code}")

        if not isinstance(data, dict):
            raise BackendError(f"malformed backend response (HTTP {resp.status_code})")

        texts: List[str] = []
        tools_used: List[str] = []
        for block in data.get("content") or []:
            if block.get("type") == "text":
                texts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tools_used.append(str(block.get("name", "")))
        return BackendResponse(text="".join(texts).strip(), tools_used=tools_used)

    async def stop(self) -> None:
        await self._client.aclose()
