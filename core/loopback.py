"""In-process messaging client that needs no backend."""

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.messaging import (
    AvailabilityType,
    BackendData,
    BackendError,
    ClientInfo,
    ClientType,
    EventHandler,
    LoginData,
    MessageBuilder,
    MessagingClient,
    RegisteredClient,
    TypingStatus,
)
from models.events import ClearEvent, DeleteEvent, Event, HideEvent
from models.message import Message, MessageState

logger = logging.getLogger(__name__)


@dataclass
class Account:
    user_id: str
    email: str
    password: str
    clients: Dict[str, RegisteredClient] = field(default_factory=dict)
    availability: Dict[str, AvailabilityType] = field(default_factory=dict)


class LoopbackServer:
    """
    Account and client bookkeeping for one simulated backend.

    Accounts are created on first login. Each account holds at most
    ``MAX_CLIENTS`` permanent clients; temporary clients do not count.
    """

    MAX_CLIENTS = 8

    def __init__(self):
        self.accounts: Dict[str, Account] = {}
        self.sessions: Dict[str, "LoopbackClient"] = {}

    def authenticate(self, login_data: LoginData) -> Account:
        account = self.accounts.get(login_data.email)
        if account is None:
            account = Account(user_id=str(uuid.uuid4()), email=login_data.email, password=login_data.password)
            self.accounts[login_data.email] = account
        elif account.password != login_data.password:
            raise BackendError("Authentication failed.", code=403, label=BackendError.INVALID_CREDENTIALS)
        return account

    def register_client(self, account: Account, client_info: ClientInfo, client_type: ClientType) -> RegisteredClient:
        permanent = [c for c in account.clients.values() if c.type == ClientType.PERMANENT]
        if client_type == ClientType.PERMANENT and len(permanent) >= self.MAX_CLIENTS:
            raise BackendError("Too many clients", code=403, label=BackendError.TOO_MANY_CLIENTS)

        client = RegisteredClient(
            id=secrets.token_hex(8),
            classification=client_info.classification,
            model=client_info.model,
            type=client_type,
            label=client_info.label,
        )
        account.clients[client.id] = client
        return client

    def remove_client(self, account: Account, client_id: str,
                      requester: Optional["LoopbackClient"] = None) -> None:
        account.clients.pop(client_id, None)
        session = self.sessions.pop(client_id, None)
        if session is not None and session is not requester:
            session.revoke()


_SERVERS: Dict[str, LoopbackServer] = {}


def server_for(backend: BackendData) -> LoopbackServer:
    """Shared server per backend name."""
    return _SERVERS.setdefault(backend.name, LoopbackServer())


class LoopbackClient(MessagingClient):
    """
    Messaging client that keeps every payload inside the process.

    Sends succeed immediately. Local deletions, hides and clears are echoed
    back as events, and ``receive`` injects inbound traffic as if it had come
    from the backend.
    """

    def __init__(self, backend: BackendData, store_name: str = "default",
                 server: Optional[LoopbackServer] = None):
        self.backend = backend
        self.store_name = store_name
        self.server = server or server_for(backend)
        self.message_builder = MessageBuilder(lambda: self._account.user_id if self._account else "")
        self.sent: List[Message] = []
        self.archived: Dict[str, bool] = {}
        self.muted: Dict[str, bool] = {}
        self.typing: Dict[str, TypingStatus] = {}
        self._store: Dict[str, str] = {}
        self._account: Optional[Account] = None
        self._client: Optional[RegisteredClient] = None
        self._client_type = ClientType.PERMANENT
        self._handlers: List[EventHandler] = []
        self._pending: List[Event] = []
        self._listening = False

    @property
    def client_id(self) -> Optional[str]:
        return self._client.id if self._client else None

    @property
    def user_id(self) -> Optional[str]:
        return self._account.user_id if self._account else None

    def _require_session(self) -> Account:
        if self._account is None:
            raise BackendError("Not logged in.", code=401, label="missing-auth")
        return self._account

    async def login(self, login_data: LoginData, persist: bool, client_info: ClientInfo) -> None:
        self._account = self.server.authenticate(login_data)
        self._client_type = login_data.client_type
        if persist:
            self._store['email'] = login_data.email
        self._client = self.server.register_client(self._account, client_info, login_data.client_type)
        self._store['clientId'] = self._client.id
        self._store['identity'] = secrets.token_hex(32)
        self.server.sessions[self._client.id] = self

    async def listen(self) -> None:
        self._require_session()
        self._listening = True
        pending, self._pending = self._pending, []
        for event in pending:
            self._dispatch(event)

    async def logout(self) -> None:
        if self._account is not None and self._client is not None:
            self.server.sessions.pop(self._client.id, None)
            if self._client_type == ClientType.TEMPORARY:
                self.server.remove_client(self._account, self._client.id)
        self.revoke()

    def revoke(self) -> None:
        self._account = None
        self._client = None
        self._listening = False
        self._store.clear()

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def receive(self, event: Event) -> None:
        """Deliver an event now, or once ``listen`` has been called."""
        if not self._listening:
            self._pending.append(event)
            return
        self._dispatch(event)

    def _dispatch(self, event: Event) -> None:
        for handler in list(self._handlers):
            handler(event)

    async def send(self, payload: Message) -> Message:
        self._require_session()
        sent = payload.with_state(MessageState.OUTGOING_SENT)
        self.sent.append(sent)
        return sent

    def fingerprint(self) -> str:
        self._require_session()
        return self._store['identity']

    async def toggle_archive_conversation(self, conversation_id: str, archived: bool) -> None:
        self._require_session()
        self.archived[conversation_id] = archived

    async def set_conversation_muted(self, conversation_id: str, muted: bool) -> None:
        self._require_session()
        self.muted[conversation_id] = muted

    async def clear_conversation(self, conversation_id: str) -> None:
        self._require_session()
        self.receive(ClearEvent(conversation_id=conversation_id))

    async def delete_message_local(self, conversation_id: str, message_id: str) -> None:
        self._require_session()
        self.receive(HideEvent(conversation_id=conversation_id, message_id=message_id))

    async def delete_message_everyone(self, conversation_id: str, message_id: str,
                                      user_ids: Optional[List[str]] = None) -> None:
        self._require_session()
        self.receive(DeleteEvent(conversation_id=conversation_id, message_id=message_id))

    async def send_typing(self, conversation_id: str, status: TypingStatus) -> None:
        self._require_session()
        self.typing[conversation_id] = status

    async def set_availability(self, team_id: str, availability: AvailabilityType) -> None:
        account = self._require_session()
        account.availability[team_id] = availability

    async def get_clients(self) -> List[RegisteredClient]:
        account = self._require_session()
        return list(account.clients.values())

    async def delete_client(self, client_id: str, password: str) -> None:
        account = self._require_session()
        if password != account.password:
            raise BackendError("Invalid password.", code=403, label=BackendError.INVALID_CREDENTIALS)
        self.server.remove_client(account, client_id, requester=self)
        logger.debug(f"Removed client {client_id} from account {account.email}")
