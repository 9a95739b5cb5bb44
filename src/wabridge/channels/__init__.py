"""Chat transport channels."""

from .chunker import MAX_MESSAGE_LENGTH, chunk_message
from .gateway_channel import GatewayChannel
from .protocol import Transport

__all__ = [
    "GatewayChannel",
    "MAX_MESSAGE_LENGTH",
    "Transport",
    "chunk_message",
]
