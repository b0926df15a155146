from typing import Optional
import structlog

from dualmode.application.websocket.connection_manager import ConnectionManager
from dualmode.application.websocket.schema.events import IntentEvent, TimeoutEvent
from dualmode.domain.tool.contract import Intent, IntentType
from dualmode.domain.tool.errors import TransportDeliveryError

logger = structlog.get_logger(__name__)


class IntentDispatcher:
    """
    Pushes applied intents to the client socket.

    Used as the orchestrator's intent sink. A SET_TIMEOUT intent also
    produces a TimeoutEvent carrying the user-facing notice.
    """

    def __init__(self, connection_manager: Optional[ConnectionManager] = None):
        self.connection_manager = connection_manager or ConnectionManager()

    async def __call__(self, client_id: str, intent: Intent):
        await self.dispatch(client_id, intent)

    async def dispatch(self, client_id: str, intent: Intent):
        logger.debug("Dispatching intent", client_id=client_id, intent_type=intent.type.value)

        await self._send(client_id, IntentEvent(
            intent_type=intent.type,
            timing=intent.timing,
            payload=intent.payload
        ))

        if intent.type == IntentType.SET_TIMEOUT:
            await self._send(client_id, TimeoutEvent(
                timeout_until=intent.payload["timeout_until"],
                duration_seconds=intent.payload.get("duration_seconds"),
                message=intent.payload.get("message")
            ))

    async def _send(self, client_id: str, event):
        delivered = await self.connection_manager.send_event(client_id, event)
        if not delivered:
            raise TransportDeliveryError(
                f"Could not deliver {event.type.value} event",
                details={"client_id": client_id}
            )
