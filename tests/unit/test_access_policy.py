"""Unit tests for identity normalization and access policy (src/wabridge/core/routing)."""

from __future__ import annotations

import re

from src.wabridge.core.models import AgentIdentity, InboundMessage
from src.wabridge.core.routing.access import (
    AccessPolicy,
    extract_group_invite_code,
    identity_from_transport_address,
    identity_to_transport_address,
    is_group_identity,
    is_whitelisted,
    normalize_identity,
)
from src.wabridge.core.routing.identity import (
    agent_identity_display,
    format_message_with_agent_name,
    generate_agent_identity,
    is_agent_message,
    normalize_agent_name,
    random_agent_name,
    to_title_case,
)

GROUP = "120363000000000001@g.us"
ALICE = "15551234567@s.whatsapp.net"


# ===========================================================================
# Identity normalization
# ===========================================================================

class TestNormalization:
    def test_normalize_identity_strips_formatting(self):
        assert normalize_identity("+1 (555) 123-4567") == "15551234567"
        assert normalize_identity("0044 7700 900123") == "447700900123"

    def test_identity_from_transport_address(self):
        assert identity_from_transport_address(ALICE) == "15551234567"
        assert identity_from_transport_address(GROUP) == "120363000000000001"
        assert identity_from_transport_address("98765@lid") == "98765"
        assert identity_from_transport_address("plain") == "plain"

    def test_identity_to_transport_address(self):
        assert identity_to_transport_address("+1 555 123 4567") == ALICE

    def test_is_group_identity(self):
        assert is_group_identity(GROUP)
        assert not is_group_identity(ALICE)


class TestWhitelist:
    def test_suffix_match_accepts_missing_country_code(self):
        assert is_whitelisted("5551234567", ["15551234567"])
        assert is_whitelisted("15551234567", ["5551234567"])

    def test_rejects_different_number(self):
        assert not is_whitelisted("9995551234", ["15551234567"])

    def test_matches_transport_address(self):
        assert is_whitelisted(ALICE, ["+1-555-123-4567"])

    def test_empty_entries_never_match(self):
        assert not is_whitelisted(ALICE, ["", "  ", "+"])
        assert not is_whitelisted("", ["15551234567"])


def test_extract_group_invite_code():
    assert extract_group_invite_code("https://chat.whatsapp.com/AbC123xyz") == "AbC123xyz"
    assert extract_group_invite_code("https://chat.whatsapp.com/invite/AbC123xyz") == "AbC123xyz"
    assert extract_group_invite_code("  AbC123xyz ") == "AbC123xyz"


# ===========================================================================
# AccessPolicy
# ===========================================================================

def _msg(sender: str, text: str = "hi", participant: str | None = None) -> InboundMessage:
    return InboundMessage(id="m1", sender_key=sender, text=text, participant=participant)


class TestPrivateMode:
    def test_whitelisted_sender_allowed(self):
        policy = AccessPolicy(["15551234567"])
        assert not policy.group_mode
        assert policy.evaluate(_msg(ALICE)).allowed

    def test_unknown_sender_blocked(self):
        decision = AccessPolicy(["15551234567"]).evaluate(_msg("4479001234@s.whatsapp.net"))
        assert not decision.allowed
        assert decision.reason == "sender not whitelisted"

    def test_group_message_blocked(self):
        decision = AccessPolicy(["15551234567"]).evaluate(_msg(GROUP, participant=ALICE))
        assert not decision.allowed


class TestGroupMode:
    def test_whitelisted_participant_allowed(self):
        policy = AccessPolicy(["15551234567"], group_address=GROUP)
        assert policy.group_mode
        assert policy.evaluate(_msg(GROUP, participant=ALICE)).allowed

    def test_private_message_blocked(self):
        policy = AccessPolicy(["15551234567"], group_address=GROUP)
        assert not policy.evaluate(_msg(ALICE)).allowed

    def test_other_group_blocked(self):
        policy = AccessPolicy(["15551234567"], group_address=GROUP)
        decision = policy.evaluate(_msg("999@g.us", participant=ALICE))
        assert decision.reason == "message from a different group"

    def test_non_whitelisted_participant_blocked(self):
        policy = AccessPolicy(["15551234567"], group_address=GROUP)
        decision = policy.evaluate(_msg(GROUP, participant="98765@lid"))
        assert not decision.allowed
        assert decision.reason == "participant not whitelisted"

    def test_allow_all_participants(self):
        policy = AccessPolicy(["15551234567"], group_address=GROUP, allow_all_group_participants=True)
        assert policy.evaluate(_msg(GROUP, participant="98765@lid")).allowed

    def test_messages_from_other_agents_ignored(self):
        policy = AccessPolicy(["15551234567"], group_address=GROUP, allow_all_group_participants=True)
        text = "[🤖 Storm@host repo/]\nhello"
        assert not policy.evaluate(_msg(GROUP, text=text, participant=ALICE)).allowed

    def test_group_address_can_be_set_after_join(self):
        policy = AccessPolicy(["15551234567"])
        policy.group_address = GROUP
        assert policy.group_mode
        assert policy.evaluate(_msg(GROUP, participant=ALICE)).allowed


# ===========================================================================
# Agent identity
# ===========================================================================

class TestAgentIdentity:
    def test_to_title_case(self):
        assert to_title_case("my-project_name") == "My Project Name"

    def test_random_agent_name_is_title_case(self):
        assert re.fullmatch(r"[A-Z][a-z]*( [A-Z][a-z]*)*", random_agent_name())

    def test_normalize_agent_name(self):
        assert normalize_agent_name("  Storm ") == "Storm"
        assert normalize_agent_name("   ") is None
        assert normalize_agent_name(None) is None

    def test_generate_agent_identity_uses_folder_and_custom_name(self, tmp_path):
        identity = generate_agent_identity(str(tmp_path), "Storm")
        assert identity.name == "Storm"
        assert identity.folder == tmp_path.name
        assert identity.host

    def test_prefix_format(self):
        identity = AgentIdentity(name="Storm", host="box", folder="repo")
        assert agent_identity_display(identity) == "Storm@box repo/"
        text = format_message_with_agent_name(identity, "done")
        assert text == "[🤖 Storm@box repo/]\ndone"
        assert is_agent_message(text)
        assert not is_agent_message("done")
