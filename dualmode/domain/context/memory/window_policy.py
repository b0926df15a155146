from typing import List, Optional, Sequence

from dualmode.config.settings import get_settings
from dualmode.domain.models.conversation import CacheEntry, Message


def split_index(total_messages: int, window_size: Optional[int] = None) -> int:
    """Index where the raw window starts; messages before it are summarized"""
    if window_size is None:
        window_size = get_settings().window_size
    return max(0, total_messages - window_size)


def window_messages(messages: Sequence[Message], window_size: Optional[int] = None) -> List[Message]:
    """The raw tail of the conversation"""
    return list(messages[split_index(len(messages), window_size):])


def should_summarize(
    cached: Optional[CacheEntry],
    total_messages: int,
    window_size: Optional[int] = None
) -> bool:
    """
    Decide whether a new summary is owed.

    Conversations that fit in the window are never summarized. Otherwise a
    summary covering [0, split) is required unless the cached one already
    reaches the split index.
    """

    if window_size is None:
        window_size = get_settings().window_size

    if total_messages <= window_size:
        return False

    required = split_index(total_messages, window_size)

    if cached is None or not cached.summary:
        return True

    return cached.summary_covers_up_to_index < required
