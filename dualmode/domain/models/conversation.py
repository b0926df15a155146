from typing import List, Optional, Callable
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds"""
    return int(moment.timestamp() * 1000)


Clock = Callable[[], datetime]


class Role(str, Enum):
    """Message author"""
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single conversation message, immutable once appended"""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    index: int = Field(ge=0, description="Ordinal position in the conversation")


class CacheEntry(BaseModel):
    """Cached conversation summary owned by exactly one user"""
    fingerprint: str
    owner_user_id: str
    summary: Optional[str] = None
    summary_covers_up_to_index: int = Field(0, ge=0, description="Summary covers messages [0, index)")
    cached_raw_message_count: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def advance(self, summary: str, covers_up_to_index: int, raw_message_count: int, now: datetime):
        """Move the summarized range forward in place"""
        self.summary = summary
        self.summary_covers_up_to_index = covers_up_to_index
        self.cached_raw_message_count = raw_message_count
        self.updated_at = now


class ContextBundle(BaseModel):
    """Bounded context handed to the reasoning component for one turn"""
    raw_messages: List[Message] = Field(default_factory=list)
    summary: Optional[str] = None
    summary_covers_up_to_index: int = 0
    fingerprint: Optional[str] = None
    timeout_expired: bool = False
    summary_refreshed: bool = False

    @property
    def first_raw_index(self) -> Optional[int]:
        return self.raw_messages[0].index if self.raw_messages else None
