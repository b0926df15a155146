from typing import Dict, List
import asyncio
from collections import defaultdict

from dualmode.domain.models.conversation import Message, Role


class ConversationLog:
    """Append-only message log per client; ordering assigns message indices"""

    def __init__(self):
        self.conversations: Dict[str, List[Message]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def append(self, client_id: str, role: Role, content: str) -> Message:
        """Append a message and return it with its ordinal index"""

        async with self._lock:
            conversation = self.conversations[client_id]
            message = Message(role=role, content=content, index=len(conversation))
            conversation.append(message)
            return message

    async def history(self, client_id: str) -> List[Message]:
        """Get conversation history for a client"""

        async with self._lock:
            return list(self.conversations.get(client_id, []))

    async def clear_session(self, client_id: str):
        """Clear all messages for a client"""

        async with self._lock:
            self.conversations.pop(client_id, None)
