"""Projection of messaging client events onto an instance's message cache."""

import logging
from typing import Any

from core.lru_cache import LRUCache
from models.events import (
    AssetEvent,
    AssetMetaEvent,
    ClearEvent,
    ConfirmationEvent,
    ContentEvent,
    DeleteEvent,
    EditEvent,
    ErrorEvent,
    Event,
    HideEvent,
)
from models.message import Confirmation, Message

logger = logging.getLogger(__name__)


def strip_binary(content: Any) -> Any:
    """Drop raw bytes from a payload, recursing into nested dicts and lists."""
    if isinstance(content, dict):
        for key in [k for k, v in content.items() if isinstance(v, (bytes, bytearray, memoryview))]:
            del content[key]
        for value in content.values():
            strip_binary(value)
    elif isinstance(content, list):
        for item in content:
            strip_binary(item)
    return content


class MessageProjector:
    """
    Keeps one instance's message cache consistent with its event stream.

    Every event is applied in a single synchronous step. References to
    messages that are not cached (evicted, never seen, already deleted) are
    no-ops, never errors. Cached messages never hold raw bytes, whatever
    their type: link preview images, image data and file data are all
    dropped before a message is stored.
    """

    def __init__(self, messages: LRUCache[Message]):
        self.messages = messages

    def __call__(self, event: Event) -> None:
        self.apply(event)

    def apply(self, event: Event) -> None:
        match event:
            case ContentEvent(message=message) | AssetMetaEvent(message=message):
                self._store(message)
            case AssetEvent(message=message):
                self._complete_asset(message)
            case EditEvent(message=message, original_message_id=original_id):
                self._store(message)
                if original_id != message.id:
                    self.messages.delete(original_id)
            case ClearEvent(conversation_id=conversation_id):
                self._clear(conversation_id)
            case DeleteEvent(message_id=message_id) | HideEvent(message_id=message_id):
                self.messages.delete(message_id)
            case ConfirmationEvent():
                self._confirm(event)
            case ErrorEvent():
                pass
            case _:
                raise TypeError(f"Unknown event: {event!r}")

    def _store(self, message: Message) -> None:
        strip_binary(message.content)
        self.messages.set(message.id, message)

    def _complete_asset(self, message: Message) -> None:
        placeholder = self.messages.get(message.id)
        if placeholder is not None and 'original' in placeholder.content:
            message.content['original'] = placeholder.content['original']
        self._store(message)


    def _clear(self, conversation_id: str) -> None:
        for message in self.messages:
            if message.conversation == conversation_id:
                self.messages.delete(message.id)

    def _confirm(self, event: ConfirmationEvent) -> None:
        for message_id in event.target_ids:
            message = self.messages.get(message_id)
            if message is None:
                logger.debug(f"Dropping confirmation for unknown message {message_id}")
                continue
            message.add_confirmation(Confirmation(status=event.status, sender_id=event.sender_id))
            self.messages.set(message.id, message)
