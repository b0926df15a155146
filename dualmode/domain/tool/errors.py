"""
Typed failures for tool execution.

Handlers raise these; the registry turns them into ``ToolResult.error`` so
callers can decide whether to retry, surface the message or degrade.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorKind(str, Enum):
    """Failure classification"""
    # Registry (pre-execution)
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL = "INTERNAL"

    # Orchestrator / handler policy
    MODE_RESTRICTED = "MODE_RESTRICTED"
    SESSION_INACTIVE = "SESSION_INACTIVE"

    # Transport delivery
    TRANSIENT = "TRANSIENT"


class ToolError(Exception):
    """Base exception for tool failures"""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.details = details or {}
        super().__init__(self.message)


class ModeRestrictedError(ToolError):
    """Tool is not admissible in the current session mode"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.MODE_RESTRICTED, message, retryable=False, details=details)


class SessionInactiveError(ToolError):
    """Tool invoked on a session that is not live"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.SESSION_INACTIVE, message, retryable=False, details=details)


class ToolValidationError(ToolError):
    """Arguments do not match the tool's parameter schema"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.VALIDATION, message, retryable=False, details=details)


class TransportDeliveryError(ToolError):
    """A client-facing notice could not be pushed"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorKind.TRANSIENT, message, retryable=True, details=details)
