from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import Any, Dict, Optional
import structlog

from dualmode.config.settings import get_settings
from dualmode.domain.context.context_renderer import render_context
from dualmode.domain.context.memory.runtime_memory import ConversationLog
from dualmode.domain.models.conversation import Role, utcnow
from dualmode.domain.orchestration.intent_orchestrator import IntentOrchestrator
from dualmode.domain.streaming.streaming_handler import IntentDispatcher
from dualmode.domain.tool.contract import ToolCallRequest
from dualmode.infrastructure.observability.logging import metrics, setup_logging
from .connection_manager import ConnectionManager
from .schema.events import (
    AssistantMessage, BlockedEvent, ContextEvent, ContextMessage, EventType,
    ToolCallEvent, ToolResultEvent, UserMessage, VoiceDisconnected
)

settings = get_settings()
setup_logging(settings.log_level, settings.log_format, settings.service_name)
logger = structlog.get_logger(__name__)

ROLE_NAMES = {"human": "user", "ai": "assistant"}


class SessionGateway:
    """Routes client events into the conversation log and the orchestrator"""

    def __init__(
        self,
        connection_manager: Optional[ConnectionManager] = None,
        orchestrator: Optional[IntentOrchestrator] = None,
        conversation_log: Optional[ConversationLog] = None
    ):
        self.connection_manager = connection_manager or ConnectionManager()
        self.orchestrator = orchestrator or IntentOrchestrator()
        if self.orchestrator.intent_sink is None:
            self.orchestrator.intent_sink = IntentDispatcher(self.connection_manager)
        self.conversation_log = conversation_log or ConversationLog()

    async def handle(self, client_id: str, user_id: str, data: Dict[str, Any]):
        event_type = data.get("type")
        fields = {key: value for key, value in data.items() if key != "type"}

        if event_type == EventType.USER_MESSAGE:
            await self.process_user_message(client_id, user_id, UserMessage(**fields))
        elif event_type == EventType.ASSISTANT_MESSAGE:
            await self.process_assistant_message(client_id, AssistantMessage(**fields))
        elif event_type == EventType.TOOL_CALL:
            await self.process_tool_call(client_id, ToolCallEvent(**fields))
        elif event_type == EventType.TURN_COMPLETE:
            await self.orchestrator.complete_turn(client_id)
        elif event_type == EventType.VOICE_DISCONNECTED:
            event = VoiceDisconnected(**fields)
            logger.info("Voice transport dropped", client_id=client_id, reason=event.reason)
            await self.orchestrator.transport_disconnected(client_id)
        else:
            await self.connection_manager.send_error(
                client_id,
                f"Unsupported event type: {event_type}",
                error_code="unsupported_event"
            )

    async def process_user_message(self, client_id: str, user_id: str, message: UserMessage):
        """Gate on the moderation clock, log the message, then send the turn context"""

        async def record():
            await self.conversation_log.append(client_id, Role.USER, message.content)
            return await self.conversation_log.history(client_id)

        state, bundle = await self.orchestrator.begin_user_turn(client_id, user_id, record)
        if bundle is None:
            metrics.increment_counter("gateway.blocked_messages")
            await self.connection_manager.send_event(
                client_id,
                BlockedEvent(timeout_until=state.timeout_until)
            )
            return

        rendered = render_context(bundle)

        await self.connection_manager.send_event(
            client_id,
            ContextEvent(
                messages=[
                    ContextMessage(role=ROLE_NAMES.get(m.type, m.type), content=str(m.content))
                    for m in rendered.messages
                ],
                summary=rendered.summary,
                fingerprint=bundle.fingerprint,
                summary_refreshed=bundle.summary_refreshed,
                dropped_messages=rendered.dropped_messages,
                mode=state.mode
            )
        )

    async def process_assistant_message(self, client_id: str, message: AssistantMessage):
        state = await self.orchestrator.state_manager.get_current_state(client_id)
        if state.suppress_transcript:
            logger.debug("Assistant message kept out of transcript", client_id=client_id)
            return
        await self.conversation_log.append(client_id, Role.ASSISTANT, message.content)

    async def end_session(self, client_id: str):
        """The socket is gone; drop what no later connection needs"""

        await self.orchestrator.close_session(client_id)
        if await self.orchestrator.release_session(client_id):
            await self.conversation_log.clear_session(client_id)

    async def process_tool_call(self, client_id: str, event: ToolCallEvent):
        request = ToolCallRequest(
            tool_name=event.tool_name,
            args=event.args,
            requesting_session_mode=event.requesting_session_mode,
            client_id=client_id
        )
        result = await self.orchestrator.execute(request)

        await self.connection_manager.send_event(
            client_id,
            ToolResultEvent(
                call_id=event.call_id,
                tool_name=event.tool_name,
                result=result.model_dump(mode="json")
            )
        )


def create_app(gateway: Optional[SessionGateway] = None) -> FastAPI:
    """Build the websocket application around a gateway"""

    gateway = gateway or SessionGateway()
    app = FastAPI(title="Dual-Mode Agent Session Server")
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    connection_manager = gateway.connection_manager
    orchestrator = gateway.orchestrator

    @app.on_event("shutdown")
    async def shutdown_event():
        for client_id in list(connection_manager.active_connections.keys()):
            await gateway.end_session(client_id)
            await connection_manager.disconnect(client_id)

        logger.info("WebSocket server shutdown")

    @app.websocket("/ws/session/{client_id}")
    async def session_websocket(websocket: WebSocket, client_id: str, user_id: Optional[str] = None):
        """Main WebSocket endpoint for a client session"""

        if not user_id:
            await websocket.close(code=1008, reason="user_id is required")
            return

        await connection_manager.connect(websocket, client_id, user_id)
        structlog.contextvars.bind_contextvars(client_id=client_id)

        state = await orchestrator.open_session(client_id)
        await connection_manager.send_connected(client_id, mode=state.mode)

        try:
            while True:
                data = await websocket.receive_json()

                try:
                    await gateway.handle(client_id, user_id, data)
                except ValidationError as e:
                    logger.warning("Invalid event", client_id=client_id, error=str(e))
                    await connection_manager.send_error(
                        client_id,
                        f"Invalid {data.get('type')} event",
                        error_code="invalid_event"
                    )
                except Exception as e:
                    logger.exception("Error processing event", client_id=client_id)
                    await connection_manager.send_error(
                        client_id,
                        f"Error processing event: {str(e)}",
                        error_code="internal_error"
                    )

        except WebSocketDisconnect:
            logger.info("Client disconnected", client_id=client_id)
        finally:
            await gateway.end_session(client_id)
            await connection_manager.disconnect(client_id, close=False)
            structlog.contextvars.unbind_contextvars("client_id")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        sessions = await orchestrator.state_manager.get_all_active_sessions()
        cache_stats = await orchestrator.memory_manager.cache_store.get_stats()
        return {
            "status": "healthy",
            "active_connections": len(connection_manager.get_active_clients()),
            "active_sessions": len(sessions),
            "cache": cache_stats,
            "metrics": metrics.get_metrics_summary(),
            "timestamp": utcnow().isoformat()
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.ws_host, port=settings.ws_port)
