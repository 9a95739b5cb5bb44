"""Sender identity normalization and whitelist / group access policy."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from ..models import InboundMessage
from .identity import is_agent_message

logger = logging.getLogger(__name__)

USER_SUFFIX = "@s.whatsapp.net"
GROUP_SUFFIX = "@g.us"
LID_SUFFIX = "@lid"
_ADDRESS_SUFFIXES = (USER_SUFFIX, GROUP_SUFFIX, LID_SUFFIX, "@c.us")

_INVITE_RE = re.compile(r"chat\.whatsapp\.com/(?:invite/)?([A-Za-z0-9]+)")


def normalize_identity(raw: str) -> str:
    """Strip spaces, hyphens, parentheses, plus signs and leading zeros."""
    return re.sub(r"[\s\-()+]", "", raw).lstrip("0")


def identity_from_transport_address(address: str) -> str:
    """``"15551234567@s.whatsapp.net"`` -> ``"15551234567"``."""
    for suffix in _ADDRESS_SUFFIXES:
        if address.endswith(suffix):
            return address[: -len(suffix)]
    return address


def identity_to_transport_address(identity: str) -> str:
    return f"{normalize_identity(identity)}{USER_SUFFIX}"


def is_group_identity(address: str) -> bool:
    return address.endswith(GROUP_SUFFIX)


def is_whitelisted(identity: str, whitelist: Iterable[str]) -> bool:
    """Match *identity* against *whitelist*, tolerating country-code prefixes.

    Both sides are normalized; a match is equality or either side being a
    suffix of the other. Entries that normalize to nothing never match.
    """
    normalized = normalize_identity(identity_from_transport_address(identity))
    if not normalized:
        return False
    for allowed in whitelist:
        normalized_allowed = normalize_identity(identity_from_transport_address(allowed))
        if not normalized_allowed:
            continue
        if (
            normalized == normalized_allowed
            or normalized.endswith(normalized_allowed)
            or normalized_allowed.endswith(normalized)
        ):
            return True
    return False


def extract_group_invite_code(url_or_code: str) -> str:
    """Accept a ``https://chat.whatsapp.com/<code>`` link or a bare code."""
    value = url_or_code.strip()
    match = _INVITE_RE.search(value)
    if match:
        return match.group(1)
    return value.rstrip("/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""


class AccessPolicy:
    """Decides whether an inbound message may reach the agent.

    Private mode (no ``group_address``): direct chats only, sender whitelisted.
    Group mode: only the joined group; the participant is whitelisted unless
    ``allow_all_group_participants`` is set; other agents are ignored.
    """

    def __init__(
        self,
        whitelist: Iterable[str],
        group_address: Optional[str] = None,
        allow_all_group_participants: bool = False,
    ) -> None:
        self.whitelist = tuple(whitelist)
        self.group_address = group_address
        self.allow_all_group_participants = allow_all_group_participants

    @property
    def group_mode(self) -> bool:
        return self.group_address is not None

    def evaluate(self, message: InboundMessage) -> AccessDecision:
        if not self.group_mode:
            if message.is_group_message:
                return AccessDecision(False, "group message in private mode")
            if not is_whitelisted(message.sender_key, self.whitelist):
                return AccessDecision(False, "sender not whitelisted")
            return AccessDecision(True)

        if not message.is_group_message:
            return AccessDecision(False, "private message in group mode")
        if message.sender_key != self.group_address:
            return AccessDecision(False, "message from a different group")
        if not message.participant:
            return AccessDecision(False, "group message without participant")
        if is_agent_message(message.text):
            return AccessDecision(False, "message from another agent")
        if self.allow_all_group_participants:
            return AccessDecision(True)
        if not is_whitelisted(message.participant, self.whitelist):
            if message.participant.endswith(LID_SUFFIX):
                logger.info(
                    "Hint: %s is a WhatsApp privacy id (lid). Add %r to the whitelist "
                    "or enable allow_all_group_participants.",
                    message.participant, identity_from_transport_address(message.participant),
                )
            return AccessDecision(False, "participant not whitelisted")
        return AccessDecision(True)
