"""
wabridge 守护进程

组装 backend / gateway channel / dispatch core / HTTP API，并负责优雅退出。
"""

import asyncio
import logging
import os
from typing import Optional

import uvicorn

from ..backends.messages_api import DEFAULT_API_BASE, MessagesApiBackend
from ..channels.gateway_channel import GatewayChannel
from ..core.conversation.dispatch import DispatchCore
from ..core.routing.access import AccessPolicy
from ..core.routing.identity import agent_identity_display, generate_agent_identity
from ..core.runtime.events import AgentEvent, AgentEventType, EventBus
from ..infra.config import BridgeConfig
from ..web.app import create_app

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "http://127.0.0.1:3000"
DEFAULT_WEB_HOST = "127.0.0.1"
DEFAULT_WEB_PORT = 8765


class BridgeDaemon:
    """
    wabridge 守护进程

    One process bridges one WhatsApp account to one agent identity.
    """

    def __init__(self, config: BridgeConfig, backend=None, channel=None):
        self.config = config
        self.identity = generate_agent_identity(config.directory, config.agent_name)
        self.events = EventBus()

        backend_cfg = config.backend or {}
        self.backend = backend or MessagesApiBackend(
            model=config.model,
            api_key=str(backend_cfg.get("api_key") or os.environ.get("ANTHROPIC_API_KEY", "")),
            mode=config.mode,
            api_base=str(backend_cfg.get("api_base") or DEFAULT_API_BASE),
            max_tokens=int(backend_cfg.get("max_tokens") or 4096),
            system_prompt=config.system_prompt,
            system_prompt_append=config.system_prompt_append,
            directory=config.directory,
        )

        gateway_cfg = config.gateway or {}
        self.channel = channel or GatewayChannel(
            base_url=str(gateway_cfg.get("base_url") or DEFAULT_GATEWAY_URL),
            identity=self.identity,
            events=self.events,
            token=gateway_cfg.get("token"),
            process_missed=config.process_missed,
            missed_threshold_mins=config.missed_threshold_mins,
            join_group=config.join_group,
        )

        self.access_policy = AccessPolicy(
            config.whitelist,
            allow_all_group_participants=config.allow_all_group_participants,
        )
        self.core = DispatchCore(
            backend=self.backend,
            transport=self.channel,
            config=config,
            identity=self.identity,
            events=self.events,
            access_policy=self.access_policy,
        )
        self.channel.on_message(self.core.handle_message)
        self.channel.on_group_joined(self._on_group_joined)
        self.events.subscribe(self._log_event)

        web_cfg = config.web or {}
        self.app = create_app(self.core, self.channel, api_key=str(web_cfg.get("api_key") or ""))
        self._web_host = str(web_cfg.get("host") or DEFAULT_WEB_HOST)
        self._web_port = int(web_cfg.get("port") or DEFAULT_WEB_PORT)
        self._server: Optional[uvicorn.Server] = None
        self._stopped = False

    def _on_group_joined(self, group_address: str) -> None:
        self.access_policy.group_address = group_address

    def _log_event(self, event: AgentEvent) -> None:
        if event.type is AgentEventType.PERMISSION_REQUEST:
            request = event.payload.get("request") or {}
            logger.info(
                "Permission request %s for %s pending",
                request.get("id"), request.get("tool_name"),
            )
        elif event.type is AgentEventType.ERROR:
            logger.error("Bridge error: %s", event.payload.get("error"))

    # -- Lifecycle ----------------------------------------------------------

    async def start(self):
        """启动守护进程"""
        logger.info("wabridge 守护进程启动: %s", agent_identity_display(self.identity))
        logger.info("Mode: %s, model: %s", self.config.mode.value, self.config.model)
        await self.channel.start()

        server_config = uvicorn.Config(
            self.app,
            host=self._web_host,
            port=self._web_port,
            log_level="debug" if self.config.verbose else "warning",
        )
        self._server = uvicorn.Server(server_config)
        try:
            await self._server.serve()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"守护进程异常: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self):
        """停止守护进程"""
        if self._stopped:
            return
        self._stopped = True
        if self._server is not None:
            self._server.should_exit = True
        self.core.dispose()
        try:
            await self.channel.stop()
        except Exception as exc:
            logger.warning("Channel stop error: %s", exc)
        try:
            await self.backend.stop()
        except Exception as exc:
            logger.warning("Backend stop error: %s", exc)
        logger.info("wabridge 守护进程已停止")
