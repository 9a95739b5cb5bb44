"""
wabridge - WhatsApp to AI agent bridge

Per-sender serialized dispatch, chat-based tool approvals and bounded
conversation history between a WhatsApp gateway and an AI backend.
"""

__version__ = "0.1.0"

from .core.conversation import ConversationWindow, DispatchCore, SessionQueue
from .core.permissions import PermissionBroker
from .core.routing import AccessPolicy, TargetingParser, is_whitelisted, parse_agent_targeting
from .channels import GatewayChannel, chunk_message
from .backends import Backend, MessagesApiBackend
from .infra import BridgeConfig, parse_config

__all__ = [
    "AccessPolicy",
    "Backend",
    "BridgeConfig",
    "ConversationWindow",
    "DispatchCore",
    "GatewayChannel",
    "MessagesApiBackend",
    "PermissionBroker",
    "SessionQueue",
    "TargetingParser",
    "chunk_message",
    "is_whitelisted",
    "parse_agent_targeting",
    "parse_config",
]
