"""Conversion of gateway message payloads into :class:`InboundMessage`."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..core.models import InboundMessage

_CAPTION_FIELDS = ("imageMessage", "videoMessage", "documentMessage")


def extract_message_text(message: Optional[Dict[str, Any]]) -> Optional[str]:
    """Text of a plain, extended or captioned media message."""
    if not message:
        return None
    if message.get("conversation"):
        return message["conversation"]
    extended = message.get("extendedTextMessage") or {}
    if extended.get("text"):
        return extended["text"]
    for field_name in _CAPTION_FIELDS:
        caption = (message.get(field_name) or {}).get("caption")
        if caption:
            return caption
    return None


def _parse_timestamp(value: Any) -> datetime:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = 0.0
    if seconds <= 0:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_gateway_message(payload: Dict[str, Any]) -> Optional[InboundMessage]:
    """Build an InboundMessage, or None when the payload carries no text."""
    text = extract_message_text(payload.get("message"))
    if not text:
        return None
    key = payload.get("key") or {}
    remote = key.get("remoteJid")
    message_id = key.get("id")
    if not remote or not message_id:
        return None
    return InboundMessage(
        id=str(message_id),
        sender_key=str(remote),
        text=text,
        timestamp=_parse_timestamp(payload.get("messageTimestamp")),
        participant=key.get("participant") or None,
        is_self_originated=bool(key.get("fromMe", False)),
    )


def is_within_threshold(
    message: InboundMessage,
    threshold_mins: float,
    *,
    now: Optional[datetime] = None,
) -> bool:
    now_utc = now or datetime.now(timezone.utc)
    return now_utc - message.timestamp <= timedelta(minutes=threshold_mins)
