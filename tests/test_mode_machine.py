"""
Tests for mode transitions and tool admissibility.

Run with: pytest tests/test_mode_machine.py -v
"""

import pytest

from dualmode.domain.models.session_state import SessionMode, SessionModeState
from dualmode.domain.orchestration.mode_machine import ModeStateMachine, ModeTrigger
from dualmode.domain.tool.errors import ErrorKind, ModeRestrictedError, SessionInactiveError
from dualmode.domain.tool.handlers import build_default_registry


@pytest.fixture
def machine() -> ModeStateMachine:
    return ModeStateMachine.from_registry(build_default_registry())


class TestTransitions:

    @pytest.mark.parametrize("start, trigger, end", [
        (SessionMode.TEXT, ModeTrigger.SWITCH_TO_VOICE, SessionMode.VOICE),
        (SessionMode.VOICE, ModeTrigger.END_VOICE_SESSION, SessionMode.TEXT),
        (SessionMode.VOICE, ModeTrigger.TRANSPORT_DISCONNECTED, SessionMode.TEXT),
    ])
    def test_valid(self, machine, start, trigger, end):
        state = SessionModeState(client_id="c", mode=start)

        assert machine.transition(state, trigger) is True
        assert state.mode == end

    @pytest.mark.parametrize("start, trigger", [
        (SessionMode.VOICE, ModeTrigger.SWITCH_TO_VOICE),
        (SessionMode.TEXT, ModeTrigger.END_VOICE_SESSION),
        (SessionMode.TEXT, ModeTrigger.TRANSPORT_DISCONNECTED),
    ])
    def test_not_applicable(self, machine, start, trigger):
        state = SessionModeState(client_id="c", mode=start)

        assert machine.transition(state, trigger) is False
        assert state.mode == start
        assert machine.can_transition(start, trigger) is False

    def test_entering_voice_clears_pending(self, machine):
        state = SessionModeState(client_id="c", voice_pending=True)

        machine.transition(state, ModeTrigger.SWITCH_TO_VOICE)

        assert state.voice_pending is False


class TestAdmissibility:

    def test_inactive_session(self, machine):
        state = SessionModeState(client_id="c", is_active=False)

        with pytest.raises(SessionInactiveError) as exc:
            machine.check_admissible("ignore_user", state)

        assert exc.value.kind == ErrorKind.SESSION_INACTIVE

    def test_tool_outside_its_modes(self, machine):
        state = SessionModeState(client_id="c", mode=SessionMode.VOICE)

        with pytest.raises(ModeRestrictedError):
            machine.check_admissible("start_voice_session", state)

        machine.check_admissible("end_voice_session", state)

    def test_stale_requesting_mode(self, machine):
        state = SessionModeState(client_id="c", mode=SessionMode.TEXT)

        with pytest.raises(ModeRestrictedError) as exc:
            machine.check_admissible("ignore_user", state, requesting_mode=SessionMode.VOICE)

        assert exc.value.details["current_mode"] == "text"

    def test_unknown_tool_allowed_everywhere(self, machine):
        assert machine.allowed_modes("not_registered") == frozenset(SessionMode)


class TestCapabilities:

    def test_voice_capability_follows_mode(self):
        assert SessionModeState(client_id="c", mode=SessionMode.VOICE).capabilities.voice is True
        assert SessionModeState(client_id="c").capabilities.voice is False

    def test_inactive_session_has_no_capabilities(self):
        capabilities = SessionModeState(client_id="c", mode=SessionMode.VOICE, is_active=False).capabilities

        assert capabilities.voice is False
        assert capabilities.messaging is False
