"""AI backends."""

from .base import Backend
from .messages_api import MessagesApiBackend
from .models import DEFAULT_MODEL, resolve_model_shorthand

__all__ = [
    "Backend",
    "DEFAULT_MODEL",
    "MessagesApiBackend",
    "resolve_model_shorthand",
]
