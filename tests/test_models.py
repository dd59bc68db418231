"""Unit tests for model classes."""

import asyncio

import pytest
from pydantic import ValidationError

from core.lru_cache import LRUCache
from core.messaging import STAGING, MessageBuilder
from models.events import ClearEvent, ConfirmationEvent, ContentEvent, EditEvent, ErrorEvent
from models.instance import Instance
from models.message import Confirmation, Message, MessageState, MessageType
from models.requests import InstanceCreationRequest, QuoteMeta, TextRequest


def test_message_to_dict():
    """Test Message JSON representation."""
    message = Message("m1", "c1", "alice", MessageType.TEXT, {"text": "hi"}, timestamp=42)

    assert message.to_dict() == {
        "id": "m1",
        "conversation": "c1",
        "from": "alice",
        "type": "text",
        "content": {"text": "hi"},
        "timestamp": 42,
        "state": "PayloadBundleState.INCOMING",
        "messageTimer": 0,
    }

    message.add_confirmation(Confirmation(status=1, sender_id="bob"))
    assert message.to_dict()["confirmations"] == [{"status": 1, "senderId": "bob"}]

    assert Message.from_dict(message.to_dict()) == message


def test_message_with_state():
    """Test that a state change copies the message."""
    message = Message("m1", "c1", "alice", MessageType.PING)
    sent = message.with_state(MessageState.OUTGOING_SENT)

    assert sent.state == MessageState.OUTGOING_SENT
    assert message.state == MessageState.INCOMING
    assert sent.id == message.id


def test_event_to_dict():
    """Test event JSON representations."""
    message = Message("m2", "c1", "alice", MessageType.MESSAGE_EDIT, {"text": "new"}, timestamp=1)

    assert ClearEvent("c1").to_dict() == {"type": "clear", "conversationId": "c1"}
    assert EditEvent(message, "m1").to_dict()["originalMessageId"] == "m1"
    assert ContentEvent(message).to_dict()["message"]["id"] == "m2"
    assert ErrorEvent(RuntimeError("boom")).to_dict() == {"type": "error", "error": "boom"}

    confirmation = ConfirmationEvent("c1", "bob", 0, "m1", ("m2",))
    assert confirmation.target_ids == ("m1", "m2")
    assert confirmation.to_dict()["moreMessageIds"] == ["m2"]


def test_message_builder_reuses_ids_and_timers():
    """Test payload ids and per-conversation timers."""
    builder = MessageBuilder(lambda: "alice")
    builder.set_message_timer("c1", 1000)

    first = builder.create_text("c1", "hi")
    again = builder.create_text("c1", "hi", message_id=first.id)
    other = builder.create_ping("c2")

    assert again.id == first.id
    assert first.sender == "alice"
    assert first.message_timer == 1000
    assert other.message_timer == 0
    assert first.state == MessageState.OUTGOING_UNSENT


@pytest.mark.asyncio
async def test_instance_listeners():
    """Test publishing events to instance listeners."""
    instance = Instance(id="i1", client=None, backend=STAGING, messages=LRUCache(10))
    queue = instance.add_listener()

    instance.publish({"type": "clear"})
    instance.remove_listener(queue)
    instance.publish({"type": "hide"})

    assert queue.get_nowait() == {"type": "clear"}
    with pytest.raises(asyncio.QueueEmpty):
        queue.get_nowait()


def test_instance_creation_request_aliases():
    """Test camelCase request bodies."""
    body = InstanceCreationRequest.model_validate({
        "email": "test@example.com",
        "password": "supersecret",
        "deviceName": "Runner",
        "customBackend": {"name": "local", "rest": "http://localhost", "ws": "ws://localhost"},
    })

    assert body.device_name == "Runner"
    assert body.resolve_backend().name == "local"

    with pytest.raises(ValidationError):
        InstanceCreationRequest.model_validate({"email": "test@example.com"})


def test_text_request_options():
    """Test conversion of text request options."""
    body = TextRequest.model_validate({
        "conversationId": "7d4d2b0a-2b9c-4f3e-9a7e-3c1f4b7a9e10",
        "text": "hi",
        "linkPreview": {"url": "https://example.com", "urlOffset": 0},
        "messageTimer": 1000,
    })

    options = body.text_options()
    assert options["link_preview"]["url_offset"] == 0
    assert options["mentions"] is None
    assert body.message_timer == 1000
    assert set(options) == {"link_preview", "mentions", "quote", "expects_read_confirmation", "legal_hold_status"}
    assert "buttons" not in TextRequest.model_fields

    with pytest.raises(ValidationError):
        TextRequest.model_validate({"conversationId": "not-a-uuid", "text": "hi"})


def test_quote_hash_must_be_sha256():
    """Test quote hash validation."""
    with pytest.raises(ValidationError):
        QuoteMeta.model_validate({
            "quotedMessageId": "7d4d2b0a-2b9c-4f3e-9a7e-3c1f4b7a9e10",
            "quotedMessageSha256": "abc",
        })
