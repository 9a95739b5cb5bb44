"""Sender access control, agent targeting and identity formatting."""

from .access import (
    AccessDecision,
    AccessPolicy,
    extract_group_invite_code,
    identity_from_transport_address,
    identity_to_transport_address,
    is_group_identity,
    is_whitelisted,
    normalize_identity,
)
from .identity import (
    format_message_with_agent_name,
    generate_agent_identity,
    normalize_agent_name,
    to_title_case,
)
from .targeting import TargetingParser, normalize_for_matching, parse_agent_targeting

__all__ = [
    "AccessDecision",
    "AccessPolicy",
    "TargetingParser",
    "extract_group_invite_code",
    "format_message_with_agent_name",
    "generate_agent_identity",
    "identity_from_transport_address",
    "identity_to_transport_address",
    "is_group_identity",
    "is_whitelisted",
    "normalize_agent_name",
    "normalize_for_matching",
    "normalize_identity",
    "parse_agent_targeting",
    "to_title_case",
]
