from typing import Sequence, Optional
import hashlib
import json

from dualmode.config.settings import get_settings
from dualmode.domain.models.conversation import Message


def fingerprint(
    messages: Sequence[Message],
    timeout_expired: bool,
    prefix_messages: Optional[int] = None,
    content_chars: Optional[int] = None,
    length: Optional[int] = None
) -> str:
    """
    Derive a stable cache key from the start of a conversation.

    Only the first ``prefix_messages`` messages (content cut to
    ``content_chars``) and the timeout flag take part, so a conversation
    keeps the same key while it grows.

    Args:
        messages: Ordered conversation log
        timeout_expired: Whether a moderation timeout has lapsed
        prefix_messages: Number of leading messages hashed (default 5)
        content_chars: Per-message content truncation (default 500)
        length: Hex characters kept from the digest (default 16)

    Returns:
        Hex digest prefix
    """

    settings = get_settings()
    if prefix_messages is None:
        prefix_messages = settings.fingerprint_prefix_messages
    if content_chars is None:
        content_chars = settings.fingerprint_content_chars
    if length is None:
        length = settings.fingerprint_length

    first_messages = [
        {"role": message.role.value, "content": message.content[:content_chars]}
        for message in messages[:prefix_messages]
    ]
    key = json.dumps(
        {"firstMessages": first_messages, "timeoutExpired": bool(timeout_expired)},
        separators=(",", ":"),
        ensure_ascii=False
    )

    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:length]
