from typing import Dict, Any, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from .conversation import utcnow


class SessionMode(str, Enum):
    """Conversational channel currently active for a session"""
    TEXT = "text"
    VOICE = "voice"


class Capabilities(BaseModel):
    """What the live transport can do for a tool handler"""
    voice: bool = False
    messaging: bool = True


class SessionModeState(BaseModel):
    """Complete per-client session state"""
    client_id: str
    mode: SessionMode = Field(default=SessionMode.TEXT)
    is_active: bool = True
    messaging: bool = Field(True, description="A client socket can receive messages")

    # Moderation clock
    timeout_until: Optional[int] = Field(None, description="Epoch ms; None means not timed out")
    timeout_expired: bool = Field(False, description="A previous timeout has lapsed")

    # Pending Text -> Voice switch
    voice_pending: bool = False
    pending_request: Optional[str] = None

    # Per-turn presentation flags
    suppress_transcript: bool = False
    suppress_audio: bool = False

    created_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(
            voice=self.is_active and self.mode == SessionMode.VOICE,
            messaging=self.is_active and self.messaging
        )

    def is_timed_out(self, now_ms: int) -> bool:
        return self.timeout_until is not None and now_ms < self.timeout_until

    def start_timeout(self, timeout_until: int):
        """Start or overwrite the moderation timeout"""
        self.timeout_until = timeout_until
        self.timeout_expired = False

    def touch(self, now: Optional[datetime] = None):
        """Update last activity timestamp"""
        self.last_activity = now or utcnow()

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the current state"""
        return {
            "client_id": self.client_id,
            "mode": self.mode.value,
            "is_active": self.is_active,
            "timeout_until": self.timeout_until,
            "timeout_expired": self.timeout_expired,
            "voice_pending": self.voice_pending,
            "last_activity": self.last_activity.isoformat()
        }
