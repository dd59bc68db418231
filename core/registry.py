"""Registry owning the lifecycle of live instances and their message state."""

import logging
import uuid
from typing import Any, Dict, List, NoReturn, Optional, Sequence, Union

from core.config import DEFAULT_DEVICE_MODEL
from core.exceptions import AuthenticationError, InstanceGoneError, InstanceNotFoundError, MessageNotFoundError
from core.lru_cache import DEFAULT_CAPACITY, LRUCache
from core.messaging import (
    PRODUCTION,
    STAGING,
    AvailabilityType,
    BackendData,
    BackendError,
    ClientClassification,
    ClientInfo,
    ClientType,
    ConfirmationType,
    LegalHoldStatus,
    LoginData,
    MessagingClientFactory,
    ReactionType,
    RegisteredClient,
    TypingStatus,
)
from core.projector import MessageProjector
from models.events import AssetEvent, AssetMetaEvent, ContentEvent, EditEvent, ErrorEvent, Event
from models.instance import Instance
from models.message import Message

logger = logging.getLogger(__name__)

INSTANCE_STORE = "instance-harness"
TEMPORARY_STORE = "temporary"
TOMBSTONE_CAPACITY = 1000


def parse_backend(backend: Union[str, BackendData, None]) -> BackendData:
    """Map a backend name or explicit endpoints to a backend profile."""
    if isinstance(backend, BackendData):
        return backend
    if backend in ("production", "prod"):
        return PRODUCTION
    return STAGING


class InstanceRegistry:
    """
    Creates, looks up and tears down instances.

    At most ``max_instances`` instances are live; creating one more silently
    evicts the least recently used. Ids of deleted or evicted instances are
    remembered so lookups can tell them apart from ids that never existed.
    """

    def __init__(self, client_factory: MessagingClientFactory, max_instances: int = 50,
                 message_cache_size: int = DEFAULT_CAPACITY):
        self.client_factory = client_factory
        self.max_instances = max_instances
        self.message_cache_size = message_cache_size
        self._instances: LRUCache[Instance] = LRUCache(max_instances, on_evict=self._on_evict)
        self._tombstones: LRUCache[str] = LRUCache(TOMBSTONE_CAPACITY)

    def _on_evict(self, instance_id: str, instance: Instance) -> None:
        logger.warning(f"Evicted instance {instance_id} ({instance.name or 'unnamed'}), registry is at capacity")
        self._tombstones.set(instance_id, "evicted")
        instance.close_listeners()

    def _attach_listeners(self, instance: Instance, projector: MessageProjector) -> None:
        def on_event(event: Event) -> None:
            if isinstance(event, ErrorEvent):
                logger.error(f"Instance {instance.id} reported an error: {event.error}")
            projector.apply(event)
            instance.publish(event.to_dict())

        instance.client.subscribe(on_event)

    def _project(self, instance: Instance, event: Event) -> None:
        MessageProjector(instance.messages).apply(event)
        instance.publish(event.to_dict())

    async def create_instance(self, login_data: LoginData, backend: Union[str, BackendData, None] = None,
                              device_class: Optional[ClientClassification] = None,
                              device_label: Optional[str] = None, device_name: Optional[str] = None,
                              instance_name: str = "") -> str:
        """
        Log a fresh client in and register it as a new instance.

        Args:
            login_data: Credentials of the account to log in with
            backend: Backend name ("production"/"prod", anything else is staging) or explicit endpoints
            device_class: Classification reported for the new client
            device_label: Optional label reported for the new client
            device_name: Model reported for the new client
            instance_name: Human readable name of the instance

        Returns:
            The new instance id

        Raises:
            AuthenticationError: If the backend rejects the login
        """
        instance_id = str(uuid.uuid4())
        backend_data = parse_backend(backend)

        logger.info(f"Creating messaging client with \"{backend_data.name}\" backend ...")
        client = self.client_factory(backend_data, INSTANCE_STORE)

        client_info = ClientInfo(
            model=device_name or DEFAULT_DEVICE_MODEL,
            classification=device_class or ClientClassification.DESKTOP,
            label=device_label,
        )

        instance = Instance(
            id=instance_id,
            client=client,
            backend=backend_data,
            messages=LRUCache(self.message_cache_size),
            name=instance_name or "",
        )
        self._attach_listeners(instance, MessageProjector(instance.messages))

        logger.info("Logging in ...")
        try:
            await client.login(login_data, True, client_info)
            await client.listen()
        except BackendError as e:
            logger.error(f"Login for instance {instance_id} failed: {e.message}")
            raise AuthenticationError(f"Backend error: {e.message}") from e

        self._instances.set(instance_id, instance)
        logger.info(f"Created instance with id \"{instance_id}\".")
        return instance_id

    async def delete_instance(self, instance_id: str, missing_ok: bool = False) -> None:
        """
        Log an instance out and forget it.

        Raises:
            InstanceNotFoundError: If the id is not registered and ``missing_ok`` is false
        """
        instance = self._instances.get(instance_id)
        if instance is None:
            if missing_ok:
                return
            self._raise_not_found(instance_id)

        await instance.client.logout()

        self._instances.delete(instance_id)
        self._tombstones.set(instance_id, "deleted")
        instance.close_listeners()
        logger.info(f"Deleted instance with id \"{instance_id}\".")

    def instance_exists(self, instance_id: str) -> bool:
        return instance_id in self._instances

    def get_instance(self, instance_id: str) -> Instance:
        """
        Look up a live instance.

        Raises:
            InstanceGoneError: If the instance was deleted or evicted
            InstanceNotFoundError: If the id was never registered
        """
        instance = self._instances.get(instance_id)
        if instance is None:
            self._raise_not_found(instance_id)
        return instance

    def _raise_not_found(self, instance_id: str) -> NoReturn:
        reason = self._tombstones.get(instance_id)
        if reason is not None:
            raise InstanceGoneError(instance_id, reason)
        raise InstanceNotFoundError(instance_id)

    def get_instances(self) -> Dict[str, Instance]:
        return self._instances.get_all()

    def get_messages(self, instance_id: str, conversation_id: str) -> List[Message]:
        return self.get_instance(instance_id).get_messages(conversation_id)

    def get_fingerprint(self, instance_id: str) -> str:
        return self.get_instance(instance_id).client.fingerprint()

    async def get_all_clients(self, instance_id: str) -> List[RegisteredClient]:
        return await self.get_instance(instance_id).client.get_clients()

    async def remove_all_clients(self, email: str, password: str,
                                 backend: Union[str, BackendData, None] = None) -> None:
        """
        Delete every protocol client registered for an account.

        Local instances logged in with one of those clients are deleted too.
        A login that fails only because the account already has too many
        clients is expected and the removal proceeds.
        """
        backend_data = parse_backend(backend)
        client = self.client_factory(backend_data, TEMPORARY_STORE)
        login_data = LoginData(email=email, password=password, client_type=ClientType.PERMANENT)
        client_info = ClientInfo(model=DEFAULT_DEVICE_MODEL, classification=ClientClassification.DESKTOP)

        try:
            await client.login(login_data, True, client_info)
        except BackendError as e:
            logger.error(f"Login for client removal failed: {e.message}")
            if e.code != 403 or e.label != BackendError.TOO_MANY_CLIENTS:
                raise

        try:
            registered = await client.get_clients()
            logger.info(f"Removing {len(registered)} clients of {email}")

            for registered_client in registered:
                for instance_id, instance in self._instances.get_all().items():
                    if instance.client.client_id == registered_client.id:
                        await self.delete_instance(instance_id, missing_ok=True)
                await client.delete_client(registered_client.id, password)
        finally:
            await client.logout()

    async def shutdown(self) -> None:
        """Log out every live instance."""
        for instance_id in self._instances.keys():
            try:
                await self.delete_instance(instance_id, missing_ok=True)
            except BackendError as e:
                logger.error(f"Logout of instance {instance_id} failed during shutdown: {e.message}")

    async def toggle_archive_conversation(self, instance_id: str, conversation_id: str, archived: bool) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.toggle_archive_conversation(conversation_id, archived)
        return instance.name

    async def toggle_mute_conversation(self, instance_id: str, conversation_id: str, muted: bool) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.set_conversation_muted(conversation_id, muted)
        return instance.name

    async def clear_conversation(self, instance_id: str, conversation_id: str) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.clear_conversation(conversation_id)
        return instance.name

    async def delete_message_local(self, instance_id: str, conversation_id: str, message_id: str) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.delete_message_local(conversation_id, message_id)
        return instance.name

    async def delete_message_everyone(self, instance_id: str, conversation_id: str, message_id: str) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.delete_message_everyone(conversation_id, message_id)
        return instance.name

    async def reset_session(self, instance_id: str, conversation_id: str) -> str:
        instance = self.get_instance(instance_id)
        payload = instance.client.message_builder.create_session_reset(conversation_id)
        sent = await instance.client.send(payload)
        return sent.id

    async def send_text(self, instance_id: str, conversation_id: str, text: str,
                        link_preview: Optional[Dict[str, Any]] = None,
                        mentions: Optional[List[Dict[str, Any]]] = None,
                        quote: Optional[Dict[str, Any]] = None,
                        expects_read_confirmation: bool = False,
                        legal_hold_status: Optional[LegalHoldStatus] = None,
                        expire_after_millis: int = 0) -> str:
        """
        Send a text message and cache it.

        With a link preview the text is sent once without and then again under
        the same id with the preview attached.

        Returns:
            Id of the sent message
        """
        instance = self.get_instance(instance_id)
        client = instance.client
        builder = client.message_builder

        client.set_message_timer(conversation_id, expire_after_millis)
        options = dict(mentions=mentions, quote=quote, expects_read_confirmation=expects_read_confirmation,
                       legal_hold_status=legal_hold_status)

        sent = await client.send(builder.create_text(conversation_id, text, **options))

        if link_preview:
            preview = builder.create_link_preview(**link_preview)
            sent = await client.send(
                builder.create_text(conversation_id, text, message_id=sent.id, link_previews=[preview], **options)
            )

        self._project(instance, ContentEvent(message=sent))
        return sent.id

    async def send_edited_text(self, instance_id: str, conversation_id: str, original_message_id: str,
                               text: str, link_preview: Optional[Dict[str, Any]] = None,
                               mentions: Optional[List[Dict[str, Any]]] = None,
                               quote: Optional[Dict[str, Any]] = None,
                               expects_read_confirmation: bool = False,
                               legal_hold_status: Optional[LegalHoldStatus] = None) -> str:
        instance = self.get_instance(instance_id)
        client = instance.client
        builder = client.message_builder
        options = dict(mentions=mentions, quote=quote, expects_read_confirmation=expects_read_confirmation,
                       legal_hold_status=legal_hold_status)

        edited = await client.send(builder.create_edited_text(conversation_id, text, original_message_id, **options))

        if link_preview:
            preview = builder.create_link_preview(**link_preview)
            edited = await client.send(
                builder.create_edited_text(conversation_id, text, original_message_id, message_id=edited.id,
                                           link_previews=[preview], **options)
            )

        self._project(instance, EditEvent(message=edited, original_message_id=original_message_id))
        return edited.id

    async def _send_confirmation(self, instance: Instance, conversation_id: str, first_message_id: str,
                                 confirmation_type: ConfirmationType,
                                 more_message_ids: Optional[Sequence[str]]) -> None:
        payload = instance.client.message_builder.create_confirmation(
            conversation_id, first_message_id, confirmation_type, more_message_ids
        )
        await instance.client.send(payload)

    async def send_confirmation_delivered(self, instance_id: str, conversation_id: str, first_message_id: str,
                                          more_message_ids: Optional[Sequence[str]] = None) -> str:
        instance = self.get_instance(instance_id)
        await self._send_confirmation(instance, conversation_id, first_message_id,
                                      ConfirmationType.DELIVERED, more_message_ids)
        return instance.name

    async def send_confirmation_read(self, instance_id: str, conversation_id: str, first_message_id: str,
                                     more_message_ids: Optional[Sequence[str]] = None) -> str:
        instance = self.get_instance(instance_id)
        await self._send_confirmation(instance, conversation_id, first_message_id,
                                      ConfirmationType.READ, more_message_ids)
        return instance.name

    async def _send_ephemeral_confirmation(self, instance_id: str, conversation_id: str, first_message_id: str,
                                           confirmation_type: ConfirmationType,
                                           more_message_ids: Optional[Sequence[str]]) -> str:
        """Confirm ephemeral messages, then delete each for its sender."""
        instance = self.get_instance(instance_id)

        targets = []
        for message_id in [first_message_id, *(more_message_ids or [])]:
            message = instance.messages.get(message_id)
            if message is None:
                raise MessageNotFoundError(message_id)
            targets.append(message)

        await self._send_confirmation(instance, conversation_id, first_message_id,
                                      confirmation_type, more_message_ids)

        for message in targets:
            await instance.client.delete_message_everyone(conversation_id, message.id, [message.sender])
        return instance.name

    async def send_ephemeral_confirmation_delivered(self, instance_id: str, conversation_id: str,
                                                    first_message_id: str,
                                                    more_message_ids: Optional[Sequence[str]] = None) -> str:
        return await self._send_ephemeral_confirmation(instance_id, conversation_id, first_message_id,
                                                       ConfirmationType.DELIVERED, more_message_ids)

    async def send_ephemeral_confirmation_read(self, instance_id: str, conversation_id: str,
                                               first_message_id: str,
                                               more_message_ids: Optional[Sequence[str]] = None) -> str:
        return await self._send_ephemeral_confirmation(instance_id, conversation_id, first_message_id,
                                                       ConfirmationType.READ, more_message_ids)

    async def send_image(self, instance_id: str, conversation_id: str, image: Dict[str, Any],
                         expects_read_confirmation: bool = False,
                         legal_hold_status: Optional[LegalHoldStatus] = None,
                         expire_after_millis: int = 0) -> str:
        instance = self.get_instance(instance_id)
        client = instance.client

        client.set_message_timer(conversation_id, expire_after_millis)
        payload = client.message_builder.create_image(conversation_id, image, expects_read_confirmation,
                                                      legal_hold_status)
        sent = await client.send(payload)

        self._project(instance, ContentEvent(message=sent))
        return sent.id

    async def send_file(self, instance_id: str, conversation_id: str, file: Dict[str, Any],
                        metadata: Dict[str, Any], expects_read_confirmation: bool = False,
                        legal_hold_status: Optional[LegalHoldStatus] = None,
                        expire_after_millis: int = 0) -> str:
        """Send file metadata, then the file data under the metadata's id."""
        instance = self.get_instance(instance_id)
        client = instance.client
        builder = client.message_builder

        client.set_message_timer(conversation_id, expire_after_millis)
        metadata_payload = await client.send(
            builder.create_file_metadata(conversation_id, metadata, expects_read_confirmation, legal_hold_status)
        )
        self._project(instance, AssetMetaEvent(message=metadata_payload))

        sent = await client.send(
            builder.create_file_data(conversation_id, file, metadata_payload.id, expects_read_confirmation,
                                     legal_hold_status)
        )
        self._project(instance, AssetEvent(message=sent))
        return sent.id

    async def send_location(self, instance_id: str, conversation_id: str, latitude: float, longitude: float,
                            name: Optional[str] = None, zoom: Optional[int] = None,
                            expects_read_confirmation: bool = False,
                            legal_hold_status: Optional[LegalHoldStatus] = None,
                            expire_after_millis: int = 0) -> str:
        instance = self.get_instance(instance_id)
        client = instance.client

        client.set_message_timer(conversation_id, expire_after_millis)
        payload = client.message_builder.create_location(conversation_id, latitude, longitude, name, zoom,
                                                         expects_read_confirmation, legal_hold_status)
        sent = await client.send(payload)

        self._project(instance, ContentEvent(message=sent))
        return sent.id

    async def send_ping(self, instance_id: str, conversation_id: str, expects_read_confirmation: bool = False,
                        legal_hold_status: Optional[LegalHoldStatus] = None,
                        expire_after_millis: int = 0) -> str:
        instance = self.get_instance(instance_id)
        client = instance.client

        client.set_message_timer(conversation_id, expire_after_millis)
        payload = client.message_builder.create_ping(conversation_id, expects_read_confirmation, legal_hold_status)
        sent = await client.send(payload)

        self._project(instance, ContentEvent(message=sent))
        return sent.id

    async def send_typing(self, instance_id: str, conversation_id: str, status: TypingStatus) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.send_typing(conversation_id, status)
        return instance.name

    async def send_reaction(self, instance_id: str, conversation_id: str, original_message_id: str,
                            reaction: ReactionType) -> str:
        instance = self.get_instance(instance_id)
        payload = instance.client.message_builder.create_reaction(conversation_id, original_message_id, reaction)
        sent = await instance.client.send(payload)
        return sent.id

    async def set_availability(self, instance_id: str, team_id: str, availability: AvailabilityType) -> str:
        instance = self.get_instance(instance_id)
        await instance.client.set_availability(team_id, availability)
        return instance.name
