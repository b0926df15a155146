"""
Helpers around the external summarization call.

The summary itself is produced by a caller-supplied coroutine; this module
only defines its signature, the prompt it is expected to send and the
fallback used when it fails.
"""

from typing import Awaitable, Callable, List, Sequence

from dualmode.domain.models.conversation import Message, Role

Summarizer = Callable[[List[Message]], Awaitable[str]]

ASSISTANT_LABEL = "Assistant"


def format_transcript(messages: Sequence[Message]) -> str:
    return "\n\n".join(
        f"{'User' if message.role == Role.USER else ASSISTANT_LABEL}: {message.content}"
        for message in messages
    )


def build_summary_prompt(messages: Sequence[Message]) -> str:
    """Prompt text for summarizing the messages that left the raw window"""

    return (
        "Please provide a concise summary of the following conversation. "
        "Focus on key topics discussed, important information shared, and the "
        "overall context. Keep it brief but informative (aim for 200-400 words):\n\n"
        f"{format_transcript(messages)}\n\n"
        "Summary:"
    )


def fallback_summary(messages: Sequence[Message]) -> str:
    return f"Previous conversation with {len(messages)} messages."


async def fallback_summarizer(messages: List[Message]) -> str:
    """Summarizer used when no model-backed one is configured"""
    return fallback_summary(messages)
