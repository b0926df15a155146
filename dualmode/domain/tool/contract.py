from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, model_validator
from enum import Enum

from dualmode.domain.models.session_state import Capabilities, SessionMode, SessionModeState
from .errors import ErrorKind

TOOL_RESULT_SCHEMA_VERSION = "1.0.0"


class IntentType(str, Enum):
    """Session-state side effects a tool can request"""
    SWITCH_TO_VOICE = "SWITCH_TO_VOICE"
    END_VOICE_SESSION = "END_VOICE_SESSION"
    SUPPRESS_TRANSCRIPT = "SUPPRESS_TRANSCRIPT"
    SUPPRESS_AUDIO = "SUPPRESS_AUDIO"
    SET_TIMEOUT = "SET_TIMEOUT"


class IntentTiming(str, Enum):
    """When an intent takes effect"""
    IMMEDIATE = "immediate"
    AFTER_CURRENT_TURN = "after_current_turn"


class Intent(BaseModel):
    """Declarative session-state change emitted by a tool"""
    type: IntentType
    timing: IntentTiming = IntentTiming.IMMEDIATE
    payload: Dict[str, Any] = Field(default_factory=dict)


class ToolCallRequest(BaseModel):
    """Tool call issued by the agent"""
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    requesting_session_mode: Optional[SessionMode] = None
    client_id: str


class ToolFailure(BaseModel):
    """Structured failure: kind + human message + retryable flag"""
    kind: ErrorKind
    message: str
    retryable: bool = False
    details: Optional[Dict[str, Any]] = None


class ToolResult(BaseModel):
    """Envelope returned for every tool execution"""
    ok: bool
    data: Any = None
    intents: List[Intent] = Field(default_factory=list)
    error: Optional[ToolFailure] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_ok_xor_error(self):
        if self.ok and self.error is not None:
            raise ValueError("successful ToolResult cannot carry an error")
        if not self.ok and self.error is None:
            raise ValueError("failed ToolResult must carry an error")
        return self

    @classmethod
    def success(cls, data: Any = None, intents: Optional[List[Intent]] = None) -> "ToolResult":
        return cls(ok=True, data=data, intents=intents or [])

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ) -> "ToolResult":
        return cls(ok=False, error=ToolFailure(kind=kind, message=message, retryable=retryable, details=details))


class ToolContext(BaseModel):
    """Everything a handler may look at; handlers never mutate ``state``"""
    args: Dict[str, Any] = Field(default_factory=dict)
    capabilities: Capabilities
    client_id: str
    state: SessionModeState
    now_ms: int


def validate_tool_result(result: Any) -> ToolResult:
    """
    Check that a handler returned a proper envelope.

    Raises:
        TypeError: If the handler returned something other than a ToolResult
    """

    if not isinstance(result, ToolResult):
        raise TypeError(f"handler must return ToolResult, got {type(result).__name__}")
    return result
