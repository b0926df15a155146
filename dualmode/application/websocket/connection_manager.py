from typing import Dict, Set, Optional
from fastapi import WebSocket
import asyncio
import structlog

from dualmode.domain.models.conversation import utcnow
from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and message routing"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.session_metadata: Dict[str, Dict] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, client_id: str, user_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[client_id] = websocket
            self.session_metadata[client_id] = {
                "user_id": user_id,
                "connected_at": utcnow(),
                "last_activity": utcnow()
            }

        logger.info("WebSocket connected", client_id=client_id, user_id=user_id)

    async def disconnect(self, client_id: str, close: bool = True):
        """Forget a connection, closing the socket unless the peer already did"""
        async with self._lock:
            ws = self.active_connections.pop(client_id, None)
            self.session_metadata.pop(client_id, None)

        if ws is not None and close:
            try:
                await ws.close()
            except Exception as e:
                logger.error("Error closing WebSocket", client_id=client_id, error=str(e))

        logger.info("WebSocket disconnected", client_id=client_id)

    async def send_event(self, client_id: str, event: BaseEvent) -> bool:
        """Send an event to a specific client"""
        websocket = self.active_connections.get(client_id)
        if websocket is None:
            logger.warning("Attempted to send to disconnected client", client_id=client_id)
            return False

        if event.client_id is None:
            event.client_id = client_id

        try:
            await websocket.send_json(event.model_dump(mode="json"))

            if client_id in self.session_metadata:
                self.session_metadata[client_id]["last_activity"] = utcnow()

            return True

        except Exception as e:
            logger.error("Failed to send event", client_id=client_id, error=str(e))
            await self.disconnect(client_id)
            return False

    async def send_connected(self, client_id: str, mode=None):
        await self.send_event(client_id, ConnectionEvent(status="connected", mode=mode))

    async def send_error(self, client_id: str, error_message: str, error_code: Optional[str] = None):
        """Send an error event to a client"""
        error_event = ErrorEvent(
            payload={"message": error_message},
            error_code=error_code,
            client_id=client_id
        )
        await self.send_event(client_id, error_event)

    def get_active_clients(self, user_id: Optional[str] = None) -> Set[str]:
        """Get connected client IDs, optionally filtered by user"""
        if user_id:
            return {
                client_id
                for client_id, metadata in self.session_metadata.items()
                if metadata.get("user_id") == user_id
            }
        return set(self.active_connections.keys())
