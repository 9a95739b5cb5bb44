"""Agent identity helpers used for outbound message prefixes."""

from __future__ import annotations

import random
import re
import socket
from pathlib import Path
from typing import Optional

from ..models import AgentIdentity

AGENT_PREFIX_MARKER = "[🤖"

_HERO_NAMES = (
    "spider-man", "iron-man", "black-widow", "storm", "wolverine", "hulk",
    "thor", "captain-marvel", "black-panther", "wonder-woman", "batman",
    "flash", "aquaman", "cyclops", "jean-grey", "rogue", "gambit",
    "daredevil", "hawkeye", "vision", "scarlet-witch", "falcon", "silver-surfer",
)


def to_title_case(text: str) -> str:
    """``"my-project_name"`` -> ``"My Project Name"``."""
    words = re.sub(r"[-_]", " ", text).split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def random_agent_name() -> str:
    return to_title_case(random.choice(_HERO_NAMES))


def normalize_agent_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    trimmed = name.strip()
    return trimmed or None


def generate_agent_identity(directory: str, custom_name: Optional[str] = None) -> AgentIdentity:
    return AgentIdentity(
        name=normalize_agent_name(custom_name) or random_agent_name(),
        host=socket.gethostname(),
        folder=Path(directory).name,
    )


def agent_identity_display(identity: AgentIdentity) -> str:
    return f"{identity.name}@{identity.host} {identity.folder}/"


def format_message_with_agent_name(identity: AgentIdentity, message: str) -> str:
    return f"{AGENT_PREFIX_MARKER} {agent_identity_display(identity)}]\n{message}"


def is_agent_message(text: str) -> bool:
    """True for messages another bridge agent sent into a shared chat."""
    return text.startswith(AGENT_PREFIX_MARKER)
