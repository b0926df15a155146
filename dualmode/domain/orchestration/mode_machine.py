from typing import Dict, FrozenSet, Optional, Tuple
from enum import Enum

from dualmode.domain.models.session_state import SessionMode, SessionModeState
from dualmode.domain.tool.errors import ModeRestrictedError, SessionInactiveError
from dualmode.domain.tool.tool_registry import ToolRegistry
from dualmode.infrastructure.observability.logging import session_logger


class ModeTrigger(str, Enum):
    """Events that move a session between modes"""
    SWITCH_TO_VOICE = "SWITCH_TO_VOICE"
    END_VOICE_SESSION = "END_VOICE_SESSION"
    TRANSPORT_DISCONNECTED = "TRANSPORT_DISCONNECTED"


TRANSITIONS: Dict[Tuple[SessionMode, ModeTrigger], SessionMode] = {
    (SessionMode.TEXT, ModeTrigger.SWITCH_TO_VOICE): SessionMode.VOICE,
    (SessionMode.VOICE, ModeTrigger.END_VOICE_SESSION): SessionMode.TEXT,
    (SessionMode.VOICE, ModeTrigger.TRANSPORT_DISCONNECTED): SessionMode.TEXT,
}


class ModeStateMachine:
    """Applies the transition table and gates tools by mode"""

    def __init__(self, tool_modes: Optional[Dict[str, FrozenSet[SessionMode]]] = None):
        self.tool_modes = dict(tool_modes or {})

    @classmethod
    def from_registry(cls, registry: ToolRegistry) -> "ModeStateMachine":
        return cls({name: tool.allowed_modes for name, tool in registry.tools.items()})

    def allowed_modes(self, tool_name: str) -> FrozenSet[SessionMode]:
        return self.tool_modes.get(tool_name, frozenset(SessionMode))

    def check_admissible(
        self,
        tool_name: str,
        state: SessionModeState,
        requesting_mode: Optional[SessionMode] = None
    ):
        """
        Reject calls that are invalid for the live session.

        Raises:
            SessionInactiveError: The session is not live
            ModeRestrictedError: The tool is not allowed in the current mode,
                or the caller's view of the mode is stale
        """

        if not state.is_active:
            raise SessionInactiveError(f"{tool_name} invoked on an inactive session")

        if requesting_mode is not None and requesting_mode != state.mode:
            raise ModeRestrictedError(
                f"{tool_name} requested for {requesting_mode.value} mode but session is in {state.mode.value} mode",
                details={"requesting_mode": requesting_mode.value, "current_mode": state.mode.value}
            )

        allowed = self.allowed_modes(tool_name)
        if state.mode not in allowed:
            raise ModeRestrictedError(
                f"{tool_name} only available in {', '.join(sorted(m.value for m in allowed))} mode",
                details={"current_mode": state.mode.value}
            )

    def can_transition(self, mode: SessionMode, trigger: ModeTrigger) -> bool:
        return (mode, trigger) in TRANSITIONS

    def transition(self, state: SessionModeState, trigger: ModeTrigger) -> bool:
        """Move ``state`` along the table; returns False when the trigger does not apply"""

        target = TRANSITIONS.get((state.mode, trigger))
        if target is None:
            return False

        previous = state.mode
        state.mode = target
        if target == SessionMode.VOICE:
            state.voice_pending = False
        session_logger.log_mode_transition(state.client_id, previous.value, target.value, trigger.value)
        return True
