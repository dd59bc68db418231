"""Message model for the per-instance conversation history."""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageType(Enum):
    """Payload types a messaging client can send or emit."""
    TEXT = "text"
    ASSET = "asset"
    ASSET_META = "asset-meta"
    ASSET_IMAGE = "asset-image"
    LOCATION = "location"
    PING = "ping"
    MESSAGE_EDIT = "message-edit"
    MESSAGE_DELETE = "message-delete"
    MESSAGE_HIDE = "message-hide"
    CLEARED = "cleared"
    CONFIRMATION = "confirmation"
    REACTION = "reaction"
    CLIENT_ACTION = "client-action"


class MessageState(Enum):
    """Delivery state of a payload."""
    INCOMING = "PayloadBundleState.INCOMING"
    OUTGOING_UNSENT = "PayloadBundleState.OUTGOING_UNSENT"
    OUTGOING_SENT = "PayloadBundleState.OUTGOING_SENT"


@dataclass
class Confirmation:
    """A delivery or read receipt recorded against a cached message."""

    status: int
    sender_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status, 'senderId': self.sender_id}


@dataclass
class Message:
    """Represents one payload known to an instance."""

    id: str
    conversation: str
    sender: str
    type: MessageType
    content: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    state: MessageState = MessageState.INCOMING
    message_timer: int = 0
    confirmations: Optional[List[Confirmation]] = None

    def add_confirmation(self, confirmation: Confirmation) -> None:
        """Append a receipt, creating the list on first use."""
        if self.confirmations is None:
            self.confirmations = []
        self.confirmations.append(confirmation)

    def with_state(self, state: MessageState) -> 'Message':
        """Copy of this message in another delivery state."""
        return replace(self, state=state)

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to its JSON representation."""
        result = {
            'id': self.id,
            'conversation': self.conversation,
            'from': self.sender,
            'type': self.type.value,
            'content': self.content,
            'timestamp': self.timestamp,
            'state': self.state.value,
            'messageTimer': self.message_timer,
        }
        if self.confirmations is not None:
            result['confirmations'] = [c.to_dict() for c in self.confirmations]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Create a Message from its JSON representation."""
        confirmations = data.get('confirmations')
        return cls(
            id=data['id'],
            conversation=data['conversation'],
            sender=data['from'],
            type=MessageType(data['type']),
            content=dict(data.get('content') or {}),
            timestamp=data.get('timestamp', 0),
            state=MessageState(data.get('state', MessageState.INCOMING.value)),
            message_timer=data.get('messageTimer', 0),
            confirmations=None if confirmations is None else [
                Confirmation(c['status'], c['senderId']) for c in confirmations
            ],
        )

    def __repr__(self) -> str:
        return f"Message(id={self.id!r}, conversation={self.conversation!r}, type={self.type.value!r})"
