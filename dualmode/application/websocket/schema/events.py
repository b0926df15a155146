from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from dualmode.domain.models.conversation import utcnow
from dualmode.domain.models.session_state import SessionMode
from dualmode.domain.tool.contract import IntentTiming, IntentType


class EventType(str, Enum):
    """WebSocket event types"""
    # Client -> server
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_CALL = "tool_call"
    TURN_COMPLETE = "turn_complete"
    VOICE_DISCONNECTED = "voice_disconnected"

    # Server -> client
    CONTEXT = "context"
    TOOL_RESULT = "tool_result"
    BLOCKED = "blocked"
    INTENT = "intent"
    TIMEOUT = "timeout"
    ERROR = "error"
    CONNECTION = "connection"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=utcnow)
    client_id: Optional[str] = None


class UserMessage(BaseEvent):
    """User message event"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str
    metadata: Optional[Dict[str, Any]] = None


class AssistantMessage(BaseEvent):
    """Reply produced by the agent, appended to the conversation log"""
    type: Literal[EventType.ASSISTANT_MESSAGE] = EventType.ASSISTANT_MESSAGE
    content: str


class ToolCallEvent(BaseEvent):
    """Tool invocation requested by the agent"""
    type: Literal[EventType.TOOL_CALL] = EventType.TOOL_CALL
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    requesting_session_mode: Optional[SessionMode] = None
    call_id: Optional[str] = None


class TurnComplete(BaseEvent):
    """The in-flight reply or spoken farewell has been fully delivered"""
    type: Literal[EventType.TURN_COMPLETE] = EventType.TURN_COMPLETE


class VoiceDisconnected(BaseEvent):
    """The voice transport dropped"""
    type: Literal[EventType.VOICE_DISCONNECTED] = EventType.VOICE_DISCONNECTED
    reason: Optional[str] = None


class ContextMessage(BaseModel):
    role: str
    content: str


class ContextEvent(BaseEvent):
    """Context the agent should reason over for this turn"""
    type: Literal[EventType.CONTEXT] = EventType.CONTEXT
    messages: List[ContextMessage]
    summary: Optional[str] = None
    fingerprint: Optional[str] = None
    summary_refreshed: bool = False
    dropped_messages: int = 0
    mode: SessionMode = SessionMode.TEXT


class ToolResultEvent(BaseEvent):
    """Envelope returned by a tool call"""
    type: Literal[EventType.TOOL_RESULT] = EventType.TOOL_RESULT
    call_id: Optional[str] = None
    tool_name: str
    result: Dict[str, Any]


class BlockedEvent(BaseEvent):
    """Input rejected while a moderation timeout is running"""
    type: Literal[EventType.BLOCKED] = EventType.BLOCKED
    timeout_until: int
    message: str = "You are currently timed out."


class IntentEvent(BaseEvent):
    """An applied intent, so the client can follow the session"""
    type: Literal[EventType.INTENT] = EventType.INTENT
    intent_type: IntentType
    timing: IntentTiming
    payload: Dict[str, Any] = Field(default_factory=dict)


class TimeoutEvent(BaseEvent):
    """Client-facing notice that a moderation timeout started"""
    type: Literal[EventType.TIMEOUT] = EventType.TIMEOUT
    timeout_until: int
    duration_seconds: Optional[float] = None
    message: Optional[str] = None


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected"]
    mode: Optional[SessionMode] = None
