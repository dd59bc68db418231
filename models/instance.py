"""Instance model for managing simulated messaging clients."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from core.lru_cache import LRUCache
from core.messaging import BackendData, MessagingClient
from models.message import Message

logger = logging.getLogger(__name__)

LISTENER_QUEUE_SIZE = 1000


@dataclass
class Instance:
    """Represents one logged in messaging client and what it has seen."""

    id: str
    client: MessagingClient
    backend: BackendData
    messages: LRUCache[Message]
    name: str = ""
    listeners: List[asyncio.Queue] = field(default_factory=list)

    def get_messages(self, conversation_id: str) -> List[Message]:
        """Cached messages of one conversation."""
        return [m for m in self.messages.values() if m.conversation == conversation_id]

    def add_listener(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=LISTENER_QUEUE_SIZE)
        self.listeners.append(queue)
        return queue

    def remove_listener(self, queue: asyncio.Queue) -> None:
        if queue in self.listeners:
            self.listeners.remove(queue)

    def publish(self, event: Dict[str, Any]) -> None:
        """Hand an event to every listener, dropping it for listeners that lag behind."""
        for queue in self.listeners:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Event queue full for instance {self.id}, dropping {event.get('type')}")

    def close_listeners(self) -> None:
        """End every listener's stream with a ``None`` sentinel."""
        for queue in self.listeners:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(None)
        self.listeners.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'backend': self.backend.name,
            'clientId': self.client.client_id,
            'instanceId': self.id,
            'name': self.name,
        }

    def __repr__(self) -> str:
        return f"Instance(id={self.id!r}, name={self.name!r}, backend={self.backend.name!r})"
