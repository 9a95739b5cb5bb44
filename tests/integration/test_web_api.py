"""Integration tests for the bridge HTTP API (src/wabridge/web/app.py)."""

from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from src.wabridge.backends.base import Backend
from src.wabridge.channels.gateway_channel import GatewayChannel
from src.wabridge.core.conversation.dispatch import DispatchCore
from src.wabridge.core.models import AgentIdentity, BackendResponse
from src.wabridge.core.runtime.events import EventBus
from src.wabridge.infra.config import BridgeConfig
from src.wabridge.web.app import create_app

ALICE = "15551234567@s.whatsapp.net"
IDENTITY = AgentIdentity(name="Storm", host="box", folder="repo")


class ToolBackend(Backend):
    def __init__(self):
        super().__init__("claude-test")

    async def query(self, prompt, history=()):
        if prompt.startswith("run"):
            allowed = await self.check_tool_permission("Bash", "run", {"command": prompt})
            return BackendResponse(text="ran" if allowed else "skipped")
        return BackendResponse(text=f"echo: {prompt}")


def _gateway_handler(outbox):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        if request.url.path == "/messages":
            outbox.append(body["text"])
            return httpx.Response(200, json={"id": f"out-{len(outbox)}"})
        return httpx.Response(200, json={})
    return handler


def _build(api_key: str = ""):
    outbox = []
    events = EventBus()
    channel = GatewayChannel(
        "http://gateway", IDENTITY, events,
        client=httpx.AsyncClient(transport=httpx.MockTransport(_gateway_handler(outbox))),
        chunk_delay=0,
    )
    core = DispatchCore(
        backend=ToolBackend(),
        transport=channel,
        config=BridgeConfig(whitelist=["15551234567"], directory="/tmp/repo"),
        identity=IDENTITY,
        events=events,
    )
    channel.on_message(core.handle_message)
    app = create_app(core, channel, api_key=api_key)
    return app, core, channel, outbox


def _payload(text: str, msg_id: str):
    return {
        "key": {"remoteJid": ALICE, "id": msg_id, "fromMe": False},
        "message": {"conversation": text},
        "messageTimestamp": time.time() + 1,
    }


async def _settle(rounds: int = 20):
    for _ in range(rounds):
        await asyncio.sleep(0)


# ===========================================================================
# Sync routes (TestClient)
# ===========================================================================

class TestStatusRoutes:
    def test_status(self):
        app, _core, _channel, _outbox = _build()
        with TestClient(app) as client:
            resp = client.get("/api/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["agent"] == "Storm@box repo/"
        assert data["ready"] is False
        assert data["mode"] == "normal"
        assert data["pending_permissions"] == 0
        assert data["summary"] == "No previous conversation."

    def test_api_key_required_when_configured(self):
        app, *_ = _build(api_key="secret")
        with TestClient(app) as client:
            assert client.get("/api/status").status_code == 401
            assert client.get("/api/status", headers={"X-API-Key": "wrong"}).status_code == 401
            assert client.get("/api/status", headers={"X-API-Key": "secret"}).status_code == 200
            assert client.get("/api/status?api_key=secret").status_code == 200

    def test_connection_webhook_updates_readiness(self):
        app, _core, channel, _outbox = _build()
        with TestClient(app) as client:
            resp = client.post("/webhook/connection", json={"connection": "open"})
            assert resp.json() == {"status": "ok", "ready": True}
            events = client.get("/api/events").json()
        assert [e["type"] for e in events] == ["authenticated", "ready"]
        assert channel.ready

    def test_resolve_unknown_permission_returns_404(self):
        app, *_ = _build()
        with TestClient(app) as client:
            resp = client.post("/api/permissions/perm_missing", json={"allowed": True})
        assert resp.status_code == 404


# ===========================================================================
# Message flow (same event loop as the dispatch core)
# ===========================================================================

@pytest.mark.asyncio
async def test_webhook_message_flow_and_api_permission_resolution():
    app, core, channel, outbox = _build()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://bridge") as client:
        await client.post("/webhook/connection", json={"connection": "open"})

        resp = await client.post("/webhook/messages", json=_payload("hello", "in-1"))
        assert resp.json() == {"accepted": True}
        await _settle()
        assert outbox[-1] == "[🤖 Storm@box repo/]\necho: hello"

        await client.post("/webhook/messages", json=_payload("run make", "in-2"))
        await _settle()
        pending = (await client.get("/api/permissions")).json()
        assert len(pending) == 1
        assert pending[0]["tool_name"] == "Bash"
        assert pending[0]["origin"] == ALICE
        assert "Permission Request" in outbox[-1]

        resp = await client.post(f"/api/permissions/{pending[0]['id']}", json={"allowed": False})
        assert resp.json()["allowed"] is False
        await _settle()
        assert outbox[-1].endswith("skipped")
        assert (await client.get("/api/permissions")).json() == []

        status = (await client.get("/api/status")).json()
        assert status["conversation_length"] == 4

    await channel.stop()


@pytest.mark.asyncio
async def test_webhook_ignores_echo_of_sent_message():
    app, core, channel, outbox = _build()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://bridge") as client:
        await client.post("/webhook/connection", json={"connection": "open"})
        await client.post("/webhook/messages", json=_payload("hello", "in-1"))
        await _settle()
        echo = await client.post("/webhook/messages", json=_payload(outbox[-1], "out-1"))
        assert echo.json() == {"accepted": False}
    await channel.stop()
