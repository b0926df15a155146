from typing import Optional, Sequence
import time
import structlog

from dualmode.config.settings import get_settings
from dualmode.domain.models.conversation import CacheEntry, ContextBundle, Message
from dualmode.infrastructure.observability.logging import metrics, session_logger
from .memory.cache_memory_store import CacheMemoryStore
from .memory.fingerprint import fingerprint
from .memory.window_policy import should_summarize, split_index
from .summarization import Summarizer, fallback_summary, fallback_summarizer

logger = structlog.get_logger(__name__)


class ConversationMemoryManager:
    """Builds bounded per-turn context from an unbounded conversation log"""

    def __init__(
        self,
        cache_store: Optional[CacheMemoryStore] = None,
        summarizer: Optional[Summarizer] = None,
        window_size: Optional[int] = None
    ):
        self.cache_store = cache_store or CacheMemoryStore()
        self.summarizer = summarizer or fallback_summarizer
        self.window_size = get_settings().window_size if window_size is None else window_size

    async def build_context(
        self,
        messages: Sequence[Message],
        user_id: str,
        timeout_expired: bool = False
    ) -> ContextBundle:
        """
        Build context for the next turn.

        Returns the last ``window_size`` messages raw plus the summary of
        everything before them. A new summary is generated and written back
        to the cache only when the cached one does not reach the split index.

        Args:
            messages: Ordered conversation log
            user_id: Owner of the cached summary
            timeout_expired: Whether a moderation timeout has lapsed

        Returns:
            ContextBundle for the reasoning component
        """

        messages = list(messages)
        total = len(messages)

        if total <= self.window_size:
            return ContextBundle(raw_messages=messages, timeout_expired=timeout_expired)

        split = split_index(total, self.window_size)
        key = fingerprint(messages, timeout_expired)

        async with self.cache_store.key_lock(key, user_id):
            cached = await self.cache_store.get(key, user_id)

            owed = should_summarize(cached, total, self.window_size)
            if not owed and cached.summary_covers_up_to_index > split:
                # Cached summary reaches into the raw window
                logger.info(
                    "Cached summary overlaps raw window",
                    fingerprint=key,
                    covers=cached.summary_covers_up_to_index,
                    split=split
                )
                owed = True

            if not owed:
                metrics.increment_counter("memory.cache_hit")
                session_logger.log_context_update(
                    user_id, key, "summary_reused",
                    {"covers_up_to_index": cached.summary_covers_up_to_index}
                )
                return ContextBundle(
                    raw_messages=messages[split:],
                    summary=cached.summary,
                    summary_covers_up_to_index=cached.summary_covers_up_to_index,
                    fingerprint=key,
                    timeout_expired=timeout_expired
                )

            metrics.increment_counter("memory.cache_miss")
            to_summarize = messages[:split]

            started = time.monotonic()
            try:
                summary = await self.summarizer(to_summarize)
            except Exception as e:
                logger.error("Summarization failed", fingerprint=key, user_id=user_id, error=str(e))
                metrics.increment_counter("memory.summary_failed")
                return ContextBundle(
                    raw_messages=messages[split:],
                    summary=fallback_summary(to_summarize),
                    summary_covers_up_to_index=split,
                    fingerprint=key,
                    timeout_expired=timeout_expired
                )
            metrics.record_latency("memory.summarize", (time.monotonic() - started) * 1000)

            now = self.cache_store.clock()
            if cached is not None:
                cached.advance(summary, split, self.window_size, now)
                await self.cache_store.put(cached)
            else:
                await self.cache_store.put(CacheEntry(
                    fingerprint=key,
                    owner_user_id=user_id,
                    summary=summary,
                    summary_covers_up_to_index=split,
                    cached_raw_message_count=self.window_size,
                    created_at=now,
                    updated_at=now
                ))

            session_logger.log_context_update(
                user_id, key, "summary_advanced",
                {"covers_up_to_index": split, "summarized_messages": len(to_summarize)}
            )

            return ContextBundle(
                raw_messages=messages[split:],
                summary=summary,
                summary_covers_up_to_index=split,
                fingerprint=key,
                timeout_expired=timeout_expired,
                summary_refreshed=True
            )
