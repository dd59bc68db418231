"""Event models for payloads emitted by a messaging client."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Tuple, Union

from models.message import Message


class EventType(Enum):
    """Categories of events the projector understands."""
    CONTENT = "content"
    ASSET_META = "asset-meta"
    ASSET = "asset"
    EDIT = "edit"
    CLEAR = "clear"
    DELETE = "delete"
    HIDE = "hide"
    CONFIRMATION = "confirmation"
    ERROR = "error"


@dataclass(frozen=True)
class ContentEvent:
    """Plain content: text, location, ping or a complete image asset."""
    type: ClassVar[EventType] = EventType.CONTENT
    message: Message

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'message': self.message.to_dict()}


@dataclass(frozen=True)
class AssetMetaEvent:
    """Metadata announcing an asset whose data follows under the same id."""
    type: ClassVar[EventType] = EventType.ASSET_META
    message: Message

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'message': self.message.to_dict()}


@dataclass(frozen=True)
class AssetEvent:
    """Asset data completing an earlier metadata placeholder."""
    type: ClassVar[EventType] = EventType.ASSET
    message: Message

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'message': self.message.to_dict()}


@dataclass(frozen=True)
class EditEvent:
    """
    Replacement text stored under a new id for ``original_message_id``.

    The entry for the original id is removed once the edit is stored, unless
    both ids are equal, in which case the edit simply overwrites the entry.
    """
    type: ClassVar[EventType] = EventType.EDIT
    message: Message
    original_message_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'message': self.message.to_dict(),
            'originalMessageId': self.original_message_id,
        }


@dataclass(frozen=True)
class ClearEvent:
    type: ClassVar[EventType] = EventType.CLEAR
    conversation_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'conversationId': self.conversation_id}


@dataclass(frozen=True)
class DeleteEvent:
    """Deletion for everyone."""
    type: ClassVar[EventType] = EventType.DELETE
    conversation_id: str
    message_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'conversationId': self.conversation_id, 'messageId': self.message_id}


@dataclass(frozen=True)
class HideEvent:
    """Deletion on this device only."""
    type: ClassVar[EventType] = EventType.HIDE
    conversation_id: str
    message_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'conversationId': self.conversation_id, 'messageId': self.message_id}


@dataclass(frozen=True)
class ConfirmationEvent:
    """Receipt from ``sender_id`` for one or more earlier messages."""
    type: ClassVar[EventType] = EventType.CONFIRMATION
    conversation_id: str
    sender_id: str
    status: int
    first_message_id: str
    more_message_ids: Tuple[str, ...] = ()

    @property
    def target_ids(self) -> Tuple[str, ...]:
        return (self.first_message_id,) + tuple(self.more_message_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'conversationId': self.conversation_id,
            'from': self.sender_id,
            'status': self.status,
            'firstMessageId': self.first_message_id,
            'moreMessageIds': list(self.more_message_ids),
        }


@dataclass(frozen=True)
class ErrorEvent:
    """Failure reported by the client outside of any call."""
    type: ClassVar[EventType] = EventType.ERROR
    error: Exception

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'error': str(self.error)}


Event = Union[
    ContentEvent,
    AssetMetaEvent,
    AssetEvent,
    EditEvent,
    ClearEvent,
    DeleteEvent,
    HideEvent,
    ConfirmationEvent,
    ErrorEvent,
]
