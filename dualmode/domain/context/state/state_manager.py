from typing import Dict, Optional
import asyncio
import weakref

from dualmode.domain.models.conversation import Clock, to_epoch_ms, utcnow
from dualmode.domain.models.session_state import SessionModeState


class StateManager:
    """Holds session mode state and the moderation clock, keyed by client_id"""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utcnow
        self.states: Dict[str, SessionModeState] = {}
        self._lock = asyncio.Lock()
        self._session_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def now_ms(self) -> int:
        return to_epoch_ms(self.clock())

    def session_lock(self, client_id: str) -> asyncio.Lock:
        """Lock serializing turns and tool calls for one session"""

        lock = self._session_locks.get(client_id)
        if lock is None:
            lock = self._session_locks[client_id] = asyncio.Lock()
        return lock

    async def get_current_state(self, client_id: str) -> SessionModeState:
        """Get or create state for a client"""

        async with self._lock:
            state = self.states.get(client_id)
            if state is None:
                state = self.states[client_id] = SessionModeState(client_id=client_id, created_at=self.clock())
            return state

    async def check_timeout(self, client_id: str) -> SessionModeState:
        """
        Compare the moderation clock with now.

        A lapsed timeout is cleared and remembered as ``timeout_expired`` so
        the next context build starts a fresh conversation fingerprint.
        """

        state = await self.get_current_state(client_id)
        async with self._lock:
            if state.timeout_until is not None and self.now_ms() >= state.timeout_until:
                state.timeout_until = None
                state.timeout_expired = True
        return state

    async def consume_timeout_expired(self, client_id: str) -> bool:
        """Report a lapsed timeout once; the following turn is back to normal"""

        state = await self.get_current_state(client_id)
        async with self._lock:
            expired, state.timeout_expired = state.timeout_expired, False
        return expired

    async def clear_state(self, client_id: str):
        """Clear state for a client"""

        async with self._lock:
            self.states.pop(client_id, None)

    async def get_all_active_sessions(self) -> Dict[str, SessionModeState]:
        """Get all live session states"""

        async with self._lock:
            return {client_id: state for client_id, state in self.states.items() if state.is_active}
