"""
Tests for rendering a context bundle into chat messages.

Run with: pytest tests/test_context_renderer.py -v
"""

from langchain_core.messages import AIMessage, HumanMessage

from dualmode.domain.context.context_renderer import (
    SUMMARY_ACK, SUMMARY_HEADER, TIMEOUT_EXPIRED_ACK, TIMEOUT_EXPIRED_NOTICE,
    estimate_tokens, render_context, trim_to_words
)
from dualmode.domain.models.conversation import ContextBundle, Message, Role

from conftest import make_messages


class TestEstimates:

    def test_four_characters_per_token(self):
        assert estimate_tokens("abcd", 0.25) == 1
        assert estimate_tokens("abcde", 0.25) == 2
        assert estimate_tokens("", 0.25) == 0

    def test_trim_to_words(self):
        assert trim_to_words("one two three", 5) == "one two three"
        assert trim_to_words("one two three four", 2) == "one two…"


class TestRenderOrder:

    def test_raw_messages_only(self):
        messages = make_messages(3)

        rendered = render_context(ContextBundle(raw_messages=messages))

        assert [type(m) for m in rendered.messages] == [HumanMessage, AIMessage, HumanMessage]
        assert [m.content for m in rendered.messages] == ["message 0", "message 1", "message 2"]

    def test_summary_pair_comes_first(self):
        bundle = ContextBundle(
            raw_messages=make_messages(25)[5:],
            summary="they talked about tea",
            summary_covers_up_to_index=5
        )

        rendered = render_context(bundle)

        assert isinstance(rendered.messages[0], HumanMessage)
        assert rendered.messages[0].content.startswith(SUMMARY_HEADER)
        assert "they talked about tea" in rendered.messages[0].content
        assert rendered.messages[1].content == SUMMARY_ACK
        assert rendered.messages[2].content == "message 5"
        assert len(rendered.messages) == 22

    def test_timeout_notice_precedes_recent_messages(self):
        bundle = ContextBundle(raw_messages=make_messages(2), timeout_expired=True)

        rendered = render_context(bundle)

        assert rendered.messages[0].content == TIMEOUT_EXPIRED_NOTICE
        assert rendered.messages[1].content == TIMEOUT_EXPIRED_ACK
        assert rendered.messages[2].content == "message 0"

    def test_timeout_notice_offers_fresh_start(self):
        assert TIMEOUT_EXPIRED_NOTICE.startswith("IMPORTANT CONTEXT: A TIMEOUT HAS JUST EXPIRED.")
        assert TIMEOUT_EXPIRED_NOTICE.endswith("GIVE THEM A FRESH START UNLESS THEY COMMIT NEW OFFENSES.")

    def test_blank_messages_skipped(self):
        messages = [
            Message(role=Role.USER, content="hi", index=0),
            Message(role=Role.ASSISTANT, content="   ", index=1),
            Message(role=Role.USER, content="anyone there?", index=2),
        ]

        rendered = render_context(ContextBundle(raw_messages=messages))

        assert [m.content for m in rendered.messages] == ["hi", "anyone there?"]


class TestTokenBudget:

    def test_summary_trimmed_before_messages_dropped(self):
        bundle = ContextBundle(
            raw_messages=[Message(role=Role.USER, content="hello", index=30)],
            summary=" ".join(["word"] * 400),
            summary_covers_up_to_index=30
        )

        rendered = render_context(bundle, max_tokens=200, summary_word_limit=80)

        assert rendered.summary_trimmed is True
        assert rendered.dropped_messages == 0
        assert len(rendered.summary.split()) == 80
        assert rendered.summary.endswith("…")
        assert rendered.messages[-1].content == "hello"

    def test_oldest_messages_dropped(self):
        messages = [Message(role=Role.USER, content=f"abcdefg{i}", index=i) for i in range(4)]

        rendered = render_context(ContextBundle(raw_messages=messages), max_tokens=5)

        assert rendered.dropped_messages == 2
        assert [m.content for m in rendered.messages] == ["abcdefg2", "abcdefg3"]

    def test_last_message_always_kept(self):
        messages = [Message(role=Role.USER, content="x" * 400, index=0)]

        rendered = render_context(ContextBundle(raw_messages=messages), max_tokens=1)

        assert len(rendered.messages) == 1

    def test_zero_budget_keeps_only_last_message(self):
        rendered = render_context(ContextBundle(raw_messages=make_messages(3)), max_tokens=0)

        assert rendered.dropped_messages == 2
        assert [m.content for m in rendered.messages] == ["message 2"]
