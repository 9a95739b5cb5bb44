"""Decide whether a chat message addresses this agent.

Supported forms::

    @AgentName message      mention by name (multi-word names allowed)
    @ai message             generic mention
    @agent message          generic mention
    /ask AgentName message  slash command naming this agent
    /ask message            generic ask
"""

from __future__ import annotations

import re
from typing import Optional

from ..models import TargetingMethod, TargetingResult

GENERIC_MENTIONS = frozenset({"ai", "agent"})

_MENTION_RE = re.compile(r"^@(\S+)\s*(.*)$", re.DOTALL)
_ASK_RE = re.compile(r"^/ask(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)
_WORD_RE = re.compile(r"\S+")


def normalize_for_matching(text: str) -> str:
    """Lowercase and drop all whitespace."""
    return re.sub(r"\s+", "", text.lower())


def _match_leading_name(body: str, normalized_name: str) -> Optional[str]:
    """Consume leading words of *body* that spell the agent name.

    Returns the text after the name (verbatim, stripped) or None.
    """
    if not normalized_name:
        return None
    accumulated = ""
    for word in _WORD_RE.finditer(body):
        accumulated += normalize_for_matching(word.group())
        if accumulated == normalized_name:
            return body[word.end():].strip()
        if not normalized_name.startswith(accumulated):
            return None
    return None


def parse_agent_targeting(text: str, agent_name: str) -> TargetingResult:
    trimmed = text.strip()
    normalized_name = normalize_for_matching(agent_name)

    mention = _MENTION_RE.match(trimmed)
    if mention:
        target = normalize_for_matching(mention.group(1))
        rest = mention.group(2).strip()
        if target in GENERIC_MENTIONS:
            return TargetingResult(True, rest, TargetingMethod.GENERIC)
        if target == normalized_name:
            return TargetingResult(True, rest, TargetingMethod.MENTION)
        # "@Spider Man hello" with agent name "Spider Man"
        remainder = _match_leading_name(trimmed[1:], normalized_name)
        if remainder is not None:
            return TargetingResult(True, remainder, TargetingMethod.MENTION)

    ask = _ASK_RE.match(trimmed)
    if ask:
        after_ask = (ask.group(1) or "").strip()
        remainder = _match_leading_name(after_ask, normalized_name)
        if remainder is not None:
            return TargetingResult(True, remainder, TargetingMethod.SLASH)
        return TargetingResult(True, after_ask, TargetingMethod.SLASH)

    return TargetingResult(False, trimmed)


class TargetingParser:
    """Binds :func:`parse_agent_targeting` to one agent name."""

    def __init__(self, agent_name: str):
        self.agent_name = agent_name

    def parse(self, text: str) -> TargetingResult:
        return parse_agent_targeting(text, self.agent_name)
