"""
Tests for conversation fingerprinting.

Run with: pytest tests/test_fingerprint.py -v
"""

import string

from dualmode.domain.context.memory.fingerprint import fingerprint
from dualmode.domain.models.conversation import Message, Role

from conftest import make_messages


class TestFingerprintStability:
    """A conversation keeps its key while it grows"""

    def test_unchanged_by_messages_after_the_fifth(self):
        messages = make_messages(5)
        grown = messages + make_messages(40, prefix="later")[5:]

        assert fingerprint(messages, False) == fingerprint(grown, False)

    def test_only_first_500_characters_count(self):
        base = "a" * 500
        first = [Message(role=Role.USER, content=base, index=0)]
        longer = [Message(role=Role.USER, content=base + " and much more text", index=0)]

        assert fingerprint(first, False) == fingerprint(longer, False)

    def test_deterministic(self):
        messages = make_messages(8)
        assert fingerprint(messages, True) == fingerprint(list(messages), True)


class TestFingerprintSensitivity:
    """Inputs that must produce a different key"""

    def test_timeout_flag_changes_key(self):
        messages = make_messages(10)
        assert fingerprint(messages, False) != fingerprint(messages, True)

    def test_early_content_changes_key(self):
        messages = make_messages(10)
        edited = list(messages)
        edited[2] = Message(role=edited[2].role, content="something else", index=2)

        assert fingerprint(messages, False) != fingerprint(edited, False)

    def test_role_changes_key(self):
        user = [Message(role=Role.USER, content="hello", index=0)]
        assistant = [Message(role=Role.ASSISTANT, content="hello", index=0)]

        assert fingerprint(user, False) != fingerprint(assistant, False)


class TestFingerprintFormat:

    def test_sixteen_hex_characters(self):
        key = fingerprint(make_messages(3), False)

        assert len(key) == 16
        assert all(c in string.hexdigits for c in key)

    def test_empty_conversation(self):
        assert len(fingerprint([], False)) == 16

    def test_custom_length(self):
        assert len(fingerprint(make_messages(3), False, length=32)) == 32
