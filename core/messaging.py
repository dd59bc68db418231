"""
Contract of the messaging client that performs protocol work for an instance.

The harness never talks to a backend itself. Everything that involves
sessions, encryption or transport goes through a ``MessagingClient``; this
module defines that interface, the value types passed across it and the
payload builder shared by implementations.
"""

import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.events import Event
from models.message import Message, MessageState, MessageType


class ClientClassification(Enum):
    DESKTOP = "desktop"
    PHONE = "phone"
    TABLET = "tablet"
    LEGAL_HOLD = "legalhold"


class ClientType(Enum):
    PERMANENT = "permanent"
    TEMPORARY = "temporary"


class ConfirmationType(Enum):
    DELIVERED = 0
    READ = 1


class ReactionType(Enum):
    LIKE = "❤️"
    NONE = ""


class TypingStatus(Enum):
    STARTED = "started"
    STOPPED = "stopped"


class AvailabilityType(Enum):
    NONE = 0
    AVAILABLE = 1
    AWAY = 2
    BUSY = 3


class LegalHoldStatus(Enum):
    UNKNOWN = 0
    DISABLED = 1
    ENABLED = 2


class BackendError(Exception):
    """Failure reported by the backend or the protocol layer."""

    TOO_MANY_CLIENTS = "too-many-clients"
    INVALID_CREDENTIALS = "invalid-credentials"

    def __init__(self, message: str, code: int = 500, label: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code
        self.label = label


@dataclass(frozen=True)
class BackendData:
    """Endpoints of one backend environment."""

    name: str
    rest: str
    ws: str

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'rest': self.rest, 'ws': self.ws}


PRODUCTION = BackendData(
    name="production",
    rest="https://prod-nginz-https.wire.com",
    ws="wss://prod-nginz-ssl.wire.com",
)

STAGING = BackendData(
    name="staging",
    rest="https://staging-nginz-https.zinfra.io",
    ws="wss://staging-nginz-ssl.zinfra.io",
)


@dataclass(frozen=True)
class LoginData:
    email: str
    password: str
    client_type: ClientType = ClientType.PERMANENT


@dataclass(frozen=True)
class ClientInfo:
    """Device description registered with the backend on login."""

    model: str
    classification: ClientClassification = ClientClassification.DESKTOP
    cookie_label: str = "default"
    label: Optional[str] = None


@dataclass(frozen=True)
class RegisteredClient:
    id: str
    classification: ClientClassification
    model: str
    type: ClientType
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'class': self.classification.value,
            'label': self.label,
            'model': self.model,
            'type': self.type.value,
        }


EventHandler = Callable[[Event], None]


class MessageBuilder:
    """
    Creates outgoing payloads for one client.

    Payload ids are fresh UUID4 strings unless the caller reuses an id, which
    is how a link preview re-send and file data stay attached to the message
    they complete. Message-level ephemeral timers are tracked per conversation
    and stamped onto every payload built for that conversation.
    """

    def __init__(self, sender_id: Callable[[], str]):
        self._sender_id = sender_id
        self._message_timers: Dict[str, int] = {}

    def set_message_timer(self, conversation_id: str, expire_after_millis: int) -> None:
        self._message_timers[conversation_id] = expire_after_millis or 0

    def get_message_timer(self, conversation_id: str) -> int:
        return self._message_timers.get(conversation_id, 0)

    def _payload(self, conversation_id: str, type: MessageType, content: Dict[str, Any],
                 message_id: Optional[str] = None) -> Message:
        return Message(
            id=message_id or str(uuid.uuid4()),
            conversation=conversation_id,
            sender=self._sender_id(),
            type=type,
            content=content,
            timestamp=int(time.time() * 1000),
            state=MessageState.OUTGOING_UNSENT,
            message_timer=self.get_message_timer(conversation_id),
        )

    @staticmethod
    def _text_content(text: str, link_previews: Optional[List[Dict[str, Any]]],
                      mentions: Optional[List[Dict[str, Any]]], quote: Optional[Dict[str, Any]],
                      expects_read_confirmation: bool,
                      legal_hold_status: Optional[LegalHoldStatus]) -> Dict[str, Any]:
        content: Dict[str, Any] = {'text': text, 'expectsReadConfirmation': bool(expects_read_confirmation)}
        if link_previews:
            content['linkPreviews'] = link_previews
        if mentions:
            content['mentions'] = mentions
        if quote:
            content['quote'] = quote
        if legal_hold_status is not None:
            content['legalHoldStatus'] = legal_hold_status.value
        return content

    def create_text(self, conversation_id: str, text: str, message_id: Optional[str] = None,
                    link_previews: Optional[List[Dict[str, Any]]] = None,
                    mentions: Optional[List[Dict[str, Any]]] = None,
                    quote: Optional[Dict[str, Any]] = None,
                    expects_read_confirmation: bool = False,
                    legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content = self._text_content(text, link_previews, mentions, quote,
                                     expects_read_confirmation, legal_hold_status)
        return self._payload(conversation_id, MessageType.TEXT, content, message_id)

    def create_edited_text(self, conversation_id: str, text: str, original_message_id: str,
                           message_id: Optional[str] = None,
                           link_previews: Optional[List[Dict[str, Any]]] = None,
                           mentions: Optional[List[Dict[str, Any]]] = None,
                           quote: Optional[Dict[str, Any]] = None,
                           expects_read_confirmation: bool = False,
                           legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content = self._text_content(text, link_previews, mentions, quote,
                                     expects_read_confirmation, legal_hold_status)
        content['originalMessageId'] = original_message_id
        return self._payload(conversation_id, MessageType.MESSAGE_EDIT, content, message_id)

    @staticmethod
    def create_link_preview(url: str, url_offset: int, permanent_url: Optional[str] = None,
                            summary: Optional[str] = None, title: Optional[str] = None,
                            tweet: Optional[Dict[str, Any]] = None,
                            image: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        preview: Dict[str, Any] = {'url': url, 'urlOffset': url_offset}
        optional = {'permanentUrl': permanent_url, 'summary': summary, 'title': title,
                    'tweet': tweet, 'image': image}
        preview.update({k: v for k, v in optional.items() if v is not None})
        return preview

    def create_image(self, conversation_id: str, image: Dict[str, Any],
                     expects_read_confirmation: bool = False,
                     legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content = dict(image)
        content['expectsReadConfirmation'] = bool(expects_read_confirmation)
        if legal_hold_status is not None:
            content['legalHoldStatus'] = legal_hold_status.value
        return self._payload(conversation_id, MessageType.ASSET_IMAGE, content)

    def create_file_metadata(self, conversation_id: str, metadata: Dict[str, Any],
                             expects_read_confirmation: bool = False,
                             legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content: Dict[str, Any] = {
            'original': dict(metadata),
            'expectsReadConfirmation': bool(expects_read_confirmation),
        }
        if legal_hold_status is not None:
            content['legalHoldStatus'] = legal_hold_status.value
        return self._payload(conversation_id, MessageType.ASSET_META, content)

    def create_file_data(self, conversation_id: str, file: Dict[str, Any], message_id: str,
                         expects_read_confirmation: bool = False,
                         legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content = dict(file)
        content['expectsReadConfirmation'] = bool(expects_read_confirmation)
        if legal_hold_status is not None:
            content['legalHoldStatus'] = legal_hold_status.value
        return self._payload(conversation_id, MessageType.ASSET, content, message_id)

    def create_location(self, conversation_id: str, latitude: float, longitude: float,
                        name: Optional[str] = None, zoom: Optional[int] = None,
                        expects_read_confirmation: bool = False,
                        legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content: Dict[str, Any] = {
            'latitude': latitude,
            'longitude': longitude,
            'expectsReadConfirmation': bool(expects_read_confirmation),
        }
        if name is not None:
            content['name'] = name
        if zoom is not None:
            content['zoom'] = zoom
        if legal_hold_status is not None:
            content['legalHoldStatus'] = legal_hold_status.value
        return self._payload(conversation_id, MessageType.LOCATION, content)

    def create_ping(self, conversation_id: str, expects_read_confirmation: bool = False,
                    legal_hold_status: Optional[LegalHoldStatus] = None) -> Message:
        content: Dict[str, Any] = {'hotKnock': False, 'expectsReadConfirmation': bool(expects_read_confirmation)}
        if legal_hold_status is not None:
            content['legalHoldStatus'] = legal_hold_status.value
        return self._payload(conversation_id, MessageType.PING, content)

    def create_reaction(self, conversation_id: str, original_message_id: str,
                        reaction: ReactionType) -> Message:
        content = {'originalMessageId': original_message_id, 'type': reaction.value}
        return self._payload(conversation_id, MessageType.REACTION, content)

    def create_confirmation(self, conversation_id: str, first_message_id: str,
                            confirmation_type: ConfirmationType,
                            more_message_ids: Optional[Sequence[str]] = None) -> Message:
        content = {
            'firstMessageId': first_message_id,
            'moreMessageIds': list(more_message_ids or []),
            'type': confirmation_type.value,
        }
        return self._payload(conversation_id, MessageType.CONFIRMATION, content)

    def create_session_reset(self, conversation_id: str) -> Message:
        return self._payload(conversation_id, MessageType.CLIENT_ACTION, {'clientAction': 'RESET_SESSION'})


class MessagingClient(ABC):
    """
    One protocol session acting on behalf of an instance.

    Implementations deliver one event per inbound or outbound payload to every
    subscribed handler, in emission order, once ``listen`` has been called.
    Any call may raise ``BackendError``.
    """

    message_builder: MessageBuilder

    @property
    @abstractmethod
    def client_id(self) -> Optional[str]:
        """Id of the registered protocol client, None before login."""

    @property
    @abstractmethod
    def user_id(self) -> Optional[str]:
        """Id of the logged in user, None before login."""

    @abstractmethod
    async def login(self, login_data: LoginData, persist: bool, client_info: ClientInfo) -> None:
        ...

    @abstractmethod
    async def listen(self) -> None:
        ...

    @abstractmethod
    async def logout(self) -> None:
        ...

    @abstractmethod
    def subscribe(self, handler: EventHandler) -> None:
        ...

    @abstractmethod
    async def send(self, payload: Message) -> Message:
        """Send a built payload and return it as sent."""

    @abstractmethod
    def fingerprint(self) -> str:
        ...

    @abstractmethod
    async def toggle_archive_conversation(self, conversation_id: str, archived: bool) -> None:
        ...

    @abstractmethod
    async def set_conversation_muted(self, conversation_id: str, muted: bool) -> None:
        ...

    @abstractmethod
    async def clear_conversation(self, conversation_id: str) -> None:
        ...

    @abstractmethod
    async def delete_message_local(self, conversation_id: str, message_id: str) -> None:
        ...

    @abstractmethod
    async def delete_message_everyone(self, conversation_id: str, message_id: str,
                                      user_ids: Optional[List[str]] = None) -> None:
        ...

    @abstractmethod
    async def send_typing(self, conversation_id: str, status: TypingStatus) -> None:
        ...

    def set_message_timer(self, conversation_id: str, expire_after_millis: int) -> None:
        self.message_builder.set_message_timer(conversation_id, expire_after_millis)

    @abstractmethod
    async def set_availability(self, team_id: str, availability: AvailabilityType) -> None:
        ...

    @abstractmethod
    async def get_clients(self) -> List[RegisteredClient]:
        ...

    @abstractmethod
    async def delete_client(self, client_id: str, password: str) -> None:
        ...


MessagingClientFactory = Callable[[BackendData, str], MessagingClient]
