from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
import structlog

from dualmode.domain.context.context_manager import ConversationMemoryManager
from dualmode.domain.context.state.state_manager import StateManager
from dualmode.domain.models.conversation import ContextBundle, Message
from dualmode.domain.models.session_state import SessionModeState
from dualmode.domain.tool.contract import Intent, IntentTiming, IntentType, ToolCallRequest, ToolContext, ToolResult
from dualmode.domain.tool.errors import ToolError
from dualmode.domain.tool.handlers import build_default_registry
from dualmode.domain.tool.tool_registry import ToolRegistry
from dualmode.infrastructure.observability.logging import metrics, session_logger
from .mode_machine import ModeStateMachine, ModeTrigger

logger = structlog.get_logger(__name__)

IntentSink = Callable[[str, Intent], Awaitable[None]]
MessageRecorder = Callable[[], Awaitable[Sequence[Message]]]

VOICE_INTENTS = frozenset({IntentType.SWITCH_TO_VOICE, IntentType.END_VOICE_SESSION})


class IntentOrchestrator:
    """
    Executes tool calls for a session and sequences the intents they emit.

    Immediate intents take effect as soon as the tool returns. Intents timed
    for after the current turn wait in a per-session queue until
    ``complete_turn`` reports that the in-flight output unit (reply, spoken
    farewell) has been fully delivered.
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        state_manager: Optional[StateManager] = None,
        memory_manager: Optional[ConversationMemoryManager] = None,
        intent_sink: Optional[IntentSink] = None,
        mode_machine: Optional[ModeStateMachine] = None
    ):
        self.registry = registry or build_default_registry()
        self.state_manager = state_manager or StateManager()
        self.memory_manager = memory_manager or ConversationMemoryManager()
        self.intent_sink = intent_sink
        self.mode_machine = mode_machine or ModeStateMachine.from_registry(self.registry)
        self.deferred: Dict[str, List[Intent]] = {}

    async def begin_turn(self, client_id: str, messages: Sequence[Message], user_id: str) -> ContextBundle:
        """Build the context the agent sees at the start of a turn"""

        async with self.state_manager.session_lock(client_id):
            await self.state_manager.check_timeout(client_id)
            return await self._build_turn_context(client_id, messages, user_id)

    async def begin_user_turn(
        self,
        client_id: str,
        user_id: str,
        record: MessageRecorder
    ) -> Tuple[SessionModeState, Optional[ContextBundle]]:
        """
        Admit a user message and build the turn context in one step.

        ``record`` appends the message and returns the full log. It only runs
        when no moderation timeout is in force, and no tool call for the
        session can slip in between the check and the append.

        Returns:
            The session state, and the context bundle or None when blocked
        """

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.check_timeout(client_id)
            if state.is_timed_out(self.state_manager.now_ms()):
                return state, None

            messages = await record()
            return state, await self._build_turn_context(client_id, messages, user_id)

    async def _build_turn_context(self, client_id: str, messages: Sequence[Message], user_id: str) -> ContextBundle:
        timeout_expired = await self.state_manager.consume_timeout_expired(client_id)
        return await self.memory_manager.build_context(messages, user_id, timeout_expired)

    async def check_input(self, client_id: str) -> SessionModeState:
        """Refresh the moderation clock; ``timeout_until`` stays set only while blocked"""

        return await self.state_manager.check_timeout(client_id)

    async def execute(self, request: ToolCallRequest, state: Optional[SessionModeState] = None) -> ToolResult:
        """Validate and run one tool call, then apply the intents it returned"""

        async with self.state_manager.session_lock(request.client_id):
            if state is None:
                state = await self.state_manager.get_current_state(request.client_id)

            try:
                self.mode_machine.check_admissible(request.tool_name, state, request.requesting_session_mode)
            except ToolError as e:
                result = ToolResult.failure(e.kind, e.message, retryable=e.retryable, details=e.details or None)
                result.meta["tool_id"] = request.tool_name
                self._record(request, result)
                return result

            context = ToolContext(
                args=request.args,
                capabilities=state.capabilities,
                client_id=request.client_id,
                state=state,
                now_ms=self.state_manager.now_ms()
            )
            result = await self.registry.execute_tool(request.tool_name, context)
            self._record(request, result)

            if result.ok and result.intents:
                await self._apply(state, result.intents, turn_boundary=False)

            state.touch(self.state_manager.clock())
            return result

    async def apply(self, client_id: str, intents: Sequence[Intent], turn_boundary: bool = False) -> List[Intent]:
        """
        Apply intents for a session.

        Returns:
            The intents that took effect now, in application order
        """

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.get_current_state(client_id)
            return await self._apply(state, intents, turn_boundary)

    async def complete_turn(self, client_id: str) -> List[Intent]:
        """The current output unit finished delivering; run deferred intents"""

        return await self.apply(client_id, [], turn_boundary=True)

    async def transport_disconnected(self, client_id: str) -> bool:
        """
        The voice transport dropped.

        Pending voice transitions are discarded and the session resolves to
        text mode, whatever was queued.
        """

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.get_current_state(client_id)
            queue = self.deferred.get(client_id, [])
            dropped = [intent for intent in queue if intent.type in VOICE_INTENTS]
            self.deferred[client_id] = [intent for intent in queue if intent.type not in VOICE_INTENTS]

            for intent in dropped:
                session_logger.log_intent(client_id, intent.type.value, intent.timing.value, "dropped")

            state.voice_pending = False
            state.suppress_audio = False
            return self.mode_machine.transition(state, ModeTrigger.TRANSPORT_DISCONNECTED)

    async def open_session(self, client_id: str, messaging: bool = True) -> SessionModeState:
        """A client (re)connected; the session is live again in whatever mode it was left"""

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.get_current_state(client_id)
            state.is_active = True
            state.messaging = messaging
            state.touch(self.state_manager.clock())
            return state

    async def close_session(self, client_id: str):
        """The client went away entirely; the session is no longer live"""

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.get_current_state(client_id)
            self.mode_machine.transition(state, ModeTrigger.TRANSPORT_DISCONNECTED)
            self.deferred.pop(client_id, None)
            state.voice_pending = False
            state.is_active = False
            logger.info("Session closed", **state.get_state_summary())

    async def release_session(self, client_id: str) -> bool:
        """
        Forget a closed session.

        State of a client still serving a moderation timeout is kept, so
        reconnecting does not lift the block.

        Returns:
            True when the session state was dropped
        """

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.get_current_state(client_id)
            if state.is_active or state.is_timed_out(self.state_manager.now_ms()):
                return False
            self.deferred.pop(client_id, None)
            await self.state_manager.clear_state(client_id)

        logger.info("Session released", client_id=client_id)
        return True

    async def take_pending_request(self, client_id: str) -> Optional[str]:
        """Hand the request carried over from text chat to the voice transport, once"""

        async with self.state_manager.session_lock(client_id):
            state = await self.state_manager.get_current_state(client_id)
            pending, state.pending_request = state.pending_request, None
            return pending

    def pending_intents(self, client_id: str) -> List[Intent]:
        return list(self.deferred.get(client_id, []))

    async def _apply(self, state: SessionModeState, intents: Sequence[Intent], turn_boundary: bool) -> List[Intent]:
        applied: List[Intent] = []
        queue = self.deferred.setdefault(state.client_id, [])

        if turn_boundary:
            pending = list(queue)
            queue.clear()
            for intent in pending:
                if await self._apply_intent(state, intent):
                    applied.append(intent)
            state.suppress_transcript = False
            state.suppress_audio = False

        for intent in intents:
            if intent.timing == IntentTiming.AFTER_CURRENT_TURN and not turn_boundary:
                self._defer(state, queue, intent)
            elif await self._apply_intent(state, intent):
                applied.append(intent)

        return applied

    def _defer(self, state: SessionModeState, queue: List[Intent], intent: Intent):
        # One queued intent per type; a later call replaces the payload
        for position, queued in enumerate(queue):
            if queued.type == intent.type:
                queue[position] = intent
                break
        else:
            queue.append(intent)

        if intent.type == IntentType.SWITCH_TO_VOICE:
            state.voice_pending = True
            state.pending_request = intent.payload.get("pending_request") or state.pending_request

        session_logger.log_intent(state.client_id, intent.type.value, intent.timing.value, "deferred")

    async def _apply_intent(self, state: SessionModeState, intent: Intent) -> bool:
        if intent.type == IntentType.SWITCH_TO_VOICE:
            if intent.payload.get("pending_request"):
                state.pending_request = intent.payload["pending_request"]
            changed = self.mode_machine.transition(state, ModeTrigger.SWITCH_TO_VOICE)
            state.voice_pending = False
        elif intent.type == IntentType.END_VOICE_SESSION:
            changed = self.mode_machine.transition(state, ModeTrigger.END_VOICE_SESSION)
        elif intent.type == IntentType.SUPPRESS_TRANSCRIPT:
            state.suppress_transcript = bool(intent.payload.get("value", True))
            changed = True
        elif intent.type == IntentType.SUPPRESS_AUDIO:
            state.suppress_audio = bool(intent.payload.get("value", True))
            changed = True
        elif intent.type == IntentType.SET_TIMEOUT:
            state.start_timeout(int(intent.payload["timeout_until"]))
            self._cancel_voice_switch(state)
            changed = True
        else:
            logger.warning("Unknown intent type", client_id=state.client_id, intent_type=intent.type)
            changed = False

        if not changed:
            session_logger.log_intent(state.client_id, intent.type.value, intent.timing.value, "ignored")
            return False

        session_logger.log_intent(state.client_id, intent.type.value, intent.timing.value, "applied")
        await self._deliver(state.client_id, intent)
        return True

    def _cancel_voice_switch(self, state: SessionModeState):
        # Moderation wins over a text -> voice handover still in flight
        queue = self.deferred.get(state.client_id, [])
        for intent in [queued for queued in queue if queued.type == IntentType.SWITCH_TO_VOICE]:
            queue.remove(intent)
            session_logger.log_intent(state.client_id, intent.type.value, intent.timing.value, "cancelled")
        state.voice_pending = False
        state.pending_request = None

    async def _deliver(self, client_id: str, intent: Intent):
        if self.intent_sink is None:
            return

        try:
            await self.intent_sink(client_id, intent)
        except Exception as e:
            # Server-side state already changed; the client notice is best effort
            logger.warning(
                "Intent delivery failed",
                client_id=client_id,
                intent_type=intent.type.value,
                error=str(e)
            )
            metrics.increment_counter("intents.delivery_failed", tags={"intent_type": intent.type.value})

    def _record(self, request: ToolCallRequest, result: ToolResult):
        session_logger.log_tool_execution(
            tool_name=request.tool_name,
            client_id=request.client_id,
            input_data=request.args,
            duration_ms=result.meta.get("duration_ms"),
            success=result.ok,
            error_kind=result.error.kind.value if result.error else None,
            intents=[intent.type.value for intent in result.intents]
        )
        metrics.increment_counter(
            "tools.success" if result.ok else "tools.failure",
            tags={"tool_name": request.tool_name}
        )
