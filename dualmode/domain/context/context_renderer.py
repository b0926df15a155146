from typing import List, Optional
import math
from dataclasses import dataclass, field

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from dualmode.config.settings import get_settings
from dualmode.domain.models.conversation import ContextBundle, Role

SUMMARY_HEADER = "PREVIOUS CONVERSATION SUMMARY:"
SUMMARY_ACK = "ACKNOWLEDGED. CONTINUING FROM SUMMARY."
TIMEOUT_EXPIRED_NOTICE = (
    "IMPORTANT CONTEXT: A TIMEOUT HAS JUST EXPIRED. THE USER HAS SERVED THEIR TIME "
    "FOR PREVIOUS OFFENSES. OLD MESSAGES IN THE CONVERSATION HISTORY THAT LED TO THE "
    "TIMEOUT ARE CONSIDERED RESOLVED. ONLY EVALUATE THE USER BASED ON THEIR CURRENT "
    "AND RECENT BEHAVIOR AFTER THIS POINT. GIVE THEM A FRESH START UNLESS THEY COMMIT NEW OFFENSES."
)
TIMEOUT_EXPIRED_ACK = "ACKNOWLEDGED. TIMEOUT EXPIRED. EVALUATING ONLY CURRENT BEHAVIOR."


@dataclass
class RenderedContext:
    messages: List[BaseMessage] = field(default_factory=list)
    summary: Optional[str] = None
    dropped_messages: int = 0
    summary_trimmed: bool = False


def estimate_tokens(text: str, tokens_per_char: Optional[float] = None) -> int:
    """Rough token estimate (1 token ~ 4 characters)"""
    if tokens_per_char is None:
        tokens_per_char = get_settings().tokens_per_char
    return math.ceil(len(text) * tokens_per_char)


def estimate_message_tokens(messages: List[BaseMessage], tokens_per_char: Optional[float] = None) -> int:
    return sum(estimate_tokens(str(message.content), tokens_per_char) for message in messages)


def trim_to_words(text: str, max_words: int) -> str:
    words = text.strip().split()
    if len(words) <= max_words:
        return text.strip()
    return " ".join(words[:max_words]) + "…"


def _summary_message(summary: str) -> HumanMessage:
    return HumanMessage(content=f"{SUMMARY_HEADER}\n\n{summary}\n\n---\n\nCONTINUING WITH RECENT MESSAGES:")


def render_context(
    bundle: ContextBundle,
    max_tokens: Optional[int] = None,
    summary_word_limit: Optional[int] = None
) -> RenderedContext:
    """
    Turn a ContextBundle into chat messages within a token budget.

    Over budget, the summary is cut to ``summary_word_limit`` words first,
    then the oldest rendered messages are dropped (at least one is kept).
    """

    settings = get_settings()
    if max_tokens is None:
        max_tokens = settings.max_context_tokens
    if summary_word_limit is None:
        summary_word_limit = settings.summary_word_limit

    summary = bundle.summary
    preamble: List[BaseMessage] = []
    if summary:
        preamble += [_summary_message(summary), AIMessage(content=SUMMARY_ACK)]

    recent: List[BaseMessage] = []
    if bundle.timeout_expired:
        recent += [HumanMessage(content=TIMEOUT_EXPIRED_NOTICE), AIMessage(content=TIMEOUT_EXPIRED_ACK)]

    for message in bundle.raw_messages:
        if not message.content or not message.content.strip():
            continue
        if message.role == Role.ASSISTANT:
            recent.append(AIMessage(content=message.content))
        else:
            recent.append(HumanMessage(content=message.content))

    messages = preamble + recent
    rendered = RenderedContext(messages=messages, summary=summary)

    tokens = estimate_message_tokens(messages)
    if tokens <= max_tokens:
        return rendered

    if summary:
        trimmed = trim_to_words(summary, summary_word_limit)
        if trimmed != summary:
            rendered.summary = trimmed
            rendered.summary_trimmed = True
            messages[0] = _summary_message(trimmed)
            tokens = estimate_message_tokens(messages)

    while tokens > max_tokens and len(messages) > 1:
        messages.pop(0)
        rendered.dropped_messages += 1
        tokens = estimate_message_tokens(messages)

    rendered.messages = messages
    return rendered
