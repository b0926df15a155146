"""
Shared pytest fixtures for dualmode tests.

Provides:
- A controllable clock
- Message factories
- Cache store, memory manager and orchestrator wired to the same clock
- Tool contexts for calling handlers directly
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from dualmode.domain.context.context_manager import ConversationMemoryManager
from dualmode.domain.context.memory.cache_memory_store import CacheMemoryStore
from dualmode.domain.context.state.state_manager import StateManager
from dualmode.domain.models.conversation import Message, Role, to_epoch_ms
from dualmode.domain.models.session_state import SessionMode, SessionModeState
from dualmode.domain.orchestration.intent_orchestrator import IntentOrchestrator
from dualmode.domain.tool.contract import Intent, ToolContext


START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)

    def now_ms(self) -> int:
        return to_epoch_ms(self.now)


class RecordingSummarizer:
    """Summarizer double that remembers what it was asked to summarize"""

    def __init__(self, fail: bool = False):
        self.calls: List[List[Message]] = []
        self.fail = fail

    async def __call__(self, messages: List[Message]) -> str:
        self.calls.append(list(messages))
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("model unavailable")
        return f"summary of {len(messages)} messages"


class RecordingSink:
    """Intent sink double"""

    def __init__(self, fail: bool = False):
        self.delivered: List[tuple] = []
        self.fail = fail

    async def __call__(self, client_id: str, intent: Intent):
        if self.fail:
            raise ConnectionError("socket closed")
        self.delivered.append((client_id, intent))

    def types(self) -> List[str]:
        return [intent.type.value for _, intent in self.delivered]


def make_messages(count: int, prefix: str = "message") -> List[Message]:
    """Alternating user/assistant messages with distinct content"""
    return [
        Message(
            role=Role.USER if i % 2 == 0 else Role.ASSISTANT,
            content=f"{prefix} {i}",
            index=i
        )
        for i in range(count)
    ]


def make_context(
    args=None,
    mode: SessionMode = SessionMode.TEXT,
    is_active: bool = True,
    now_ms: int = 1_700_000_000_000,
    **state_fields
) -> ToolContext:
    """ToolContext for invoking a handler without the orchestrator"""
    state = SessionModeState(client_id="client-1", mode=mode, is_active=is_active, **state_fields)
    return ToolContext(
        args=args or {},
        capabilities=state.capabilities,
        client_id="client-1",
        state=state,
        now_ms=now_ms
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def summarizer() -> RecordingSummarizer:
    return RecordingSummarizer()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cache_store(clock) -> CacheMemoryStore:
    return CacheMemoryStore(ttl_seconds=3600, clock=clock)


@pytest.fixture
def memory_manager(cache_store, summarizer) -> ConversationMemoryManager:
    return ConversationMemoryManager(cache_store=cache_store, summarizer=summarizer, window_size=20)


@pytest.fixture
def state_manager(clock) -> StateManager:
    return StateManager(clock=clock)


@pytest.fixture
def orchestrator(state_manager, memory_manager, sink) -> IntentOrchestrator:
    return IntentOrchestrator(state_manager=state_manager, memory_manager=memory_manager, intent_sink=sink)
