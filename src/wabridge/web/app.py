"""
Bridge HTTP API

- /api/*      status, pending permissions, recent events (operators)
- /webhook/*  inbound messages and connection updates (gateway)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from ..channels.gateway_channel import GatewayChannel
from ..core.conversation.dispatch import DispatchCore
from ..core.routing.identity import agent_identity_display
from .auth import verify_api_key

logger = logging.getLogger(__name__)


class PermissionDecision(BaseModel):
    allowed: bool


def create_app(core: DispatchCore, channel: GatewayChannel, api_key: str = "") -> FastAPI:
    app = FastAPI(title="wabridge")
    app.state.api_key = api_key
    app.state.core = core
    app.state.channel = channel

    # ========================================================================
    # API Routes
    # ========================================================================

    @app.get("/api/status", dependencies=[Depends(verify_api_key)])
    async def api_status() -> Dict[str, Any]:
        """Bridge status and conversation preview"""
        return {
            "agent": agent_identity_display(core.identity),
            "ready": channel.ready,
            "mode": core.config.mode.value,
            "model": core.config.model,
            "group": channel.get_group_address(),
            "conversation_length": core.window.length,
            "pending_permissions": core.pending_permission_count,
            "status_text": core.status_text(),
            "summary": core.window.get_summary(),
        }

    @app.get("/api/permissions", dependencies=[Depends(verify_api_key)])
    async def api_list_permissions() -> List[Dict[str, Any]]:
        """Outstanding permission requests, oldest first"""
        return [request.to_dict() for request in core.permissions.list_pending()]

    @app.post("/api/permissions/{request_id}", dependencies=[Depends(verify_api_key)])
    async def api_resolve_permission(request_id: str, decision: PermissionDecision) -> Dict[str, Any]:
        """Approve or deny one permission request"""
        if not core.resolve_permission(request_id, decision.allowed):
            raise HTTPException(status_code=404, detail=f"No pending permission {request_id}")
        logger.info("Permission %s resolved via API (allowed=%s)", request_id, decision.allowed)
        return {"status": "ok", "id": request_id, "allowed": decision.allowed}

    @app.get("/api/events", dependencies=[Depends(verify_api_key)])
    async def api_events(limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent bridge events"""
        return [event.to_dict() for event in core.events.recent(limit)]

    # ========================================================================
    # Gateway webhooks
    # ========================================================================

    @app.post("/webhook/messages", dependencies=[Depends(verify_api_key)])
    async def webhook_messages(payload: Dict[str, Any]) -> Dict[str, Any]:
        accepted = await channel.handle_gateway_message(payload)
        return {"accepted": accepted}

    @app.post("/webhook/connection", dependencies=[Depends(verify_api_key)])
    async def webhook_connection(update: Dict[str, Any]) -> Dict[str, Any]:
        await channel.handle_connection_update(update)
        return {"status": "ok", "ready": channel.ready}

    return app
