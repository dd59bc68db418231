"""Integration tests for the HTTP API."""

import base64
import json
import uuid

import pytest

from core.messaging import LoginData
from models.events import AssetMetaEvent
from models.message import Message, MessageType
from routes.instances import stream_events

API = "/api/v1"


@pytest.fixture
def instance_id(http):
    """Id of an instance logged in with test credentials."""
    response = http.put(f"{API}/instance", json={
        "backend": "production",
        "email": "test@example.com",
        "password": "supersecret",
        "instanceName": "Jasmine",
    })
    assert response.status_code == 200
    return response.json()["instanceId"]


def test_root_and_health(http):
    """Test informational endpoints."""
    assert http.get("/").json()["message"] == "Instance Harness API"

    health = http.get("/health").json()
    assert health["status"] == "healthy"
    assert health["maxInstances"] == 5


def test_create_instance(http, instance_id):
    """Test creating and reading an instance."""
    uuid.UUID(instance_id)

    response = http.get(f"{API}/instance/{instance_id}")
    assert response.status_code == 200
    assert response.json()["instanceId"] == instance_id
    assert response.json()["name"] == "Jasmine"
    assert response.json()["backend"] == "production"

    assert instance_id in http.get(f"{API}/instances").json()


def test_create_instance_without_login_data(http):
    """Test that missing credentials are rejected."""
    response = http.put(f"{API}/instance", json={"backend": "production"})

    assert response.status_code == 422
    assert response.json()["code"] == 422
    assert "Validation error" in response.json()["error"]


def test_create_instance_with_wrong_password(http, instance_id):
    """Test that a rejected login is reported as a server error."""
    response = http.put(f"{API}/instance", json={"email": "test@example.com", "password": "wrong"})

    assert response.status_code == 500
    assert "Backend error" in response.json()["error"]
    assert "stack" in response.json()


def test_send_text_and_get_messages(http, instance_id):
    """Test that sent text is returned by getMessages."""
    conversation_id = str(uuid.uuid4())

    sent = http.post(f"{API}/instance/{instance_id}/sendText", json={
        "conversationId": conversation_id,
        "text": "Hello from Jasmine",
    })
    assert sent.status_code == 200
    message_id = sent.json()["messageId"]

    response = http.post(f"{API}/instance/{instance_id}/getMessages", json={"conversationId": conversation_id})

    assert response.status_code == 200
    messages = response.json()
    assert len(messages) == 1
    assert messages[0]["id"] == message_id
    assert messages[0]["conversation"] == conversation_id
    assert messages[0]["content"]["text"] == "Hello from Jasmine"


def test_send_file(http, instance_id):
    """Test that a file is cached once with its metadata."""
    conversation_id = str(uuid.uuid4())

    sent = http.post(f"{API}/instance/{instance_id}/sendFile", json={
        "conversationId": conversation_id,
        "data": base64.b64encode(b"hello").decode(),
        "fileName": "hello.txt",
        "type": "text/plain",
    })
    assert sent.status_code == 200

    messages = http.post(f"{API}/instance/{instance_id}/getMessages",
                         json={"conversationId": conversation_id}).json()
    assert len(messages) == 1
    assert messages[0]["type"] == "asset"
    assert messages[0]["content"]["original"] == {"name": "hello.txt", "type": "text/plain", "length": 5}


def test_invalid_base64_rejected(http, instance_id):
    """Test that image data must be base64."""
    response = http.post(f"{API}/instance/{instance_id}/sendImage", json={
        "conversationId": str(uuid.uuid4()),
        "data": "not base64!",
        "height": 1,
        "width": 1,
        "type": "image/png",
    })

    assert response.status_code == 422


def test_ephemeral_confirmation_for_unknown_message(http, instance_id):
    """Test that confirming an uncached message is not found."""
    response = http.post(f"{API}/instance/{instance_id}/sendEphemeralConfirmationRead", json={
        "conversationId": str(uuid.uuid4()),
        "firstMessageId": str(uuid.uuid4()),
    })

    assert response.status_code == 404
    assert "not found" in response.json()["error"]


def test_fingerprint_and_clients(http, instance_id):
    """Test fingerprint and client listing."""
    fingerprint = http.get(f"{API}/instance/{instance_id}/fingerprint").json()
    assert fingerprint["instanceId"] == instance_id
    assert len(fingerprint["fingerprint"]) == 64

    clients = http.get(f"{API}/instance/{instance_id}/clients").json()
    assert len(clients) == 1
    assert clients[0]["class"] == "desktop"


def test_unknown_instance(http):
    """Test that an unknown instance id is not found."""
    unknown = str(uuid.uuid4())

    response = http.get(f"{API}/instance/{unknown}")

    assert response.status_code == 404
    assert response.json() == {"code": 404, "error": f'Instance "{unknown}" not found.'}


def test_malformed_instance_id(http):
    """Test that instance ids must be UUIDs."""
    response = http.get(f"{API}/instance/not-a-uuid")

    assert response.status_code == 422
    assert response.json()["error"] == "Validation error: Instance ID must be a UUID."


def test_unknown_route(http):
    """Test that unknown routes are not found."""
    assert http.get(f"{API}/nothing-here").status_code == 404


def test_delete_instance(http, instance_id):
    """Test that a deleted instance is gone."""
    response = http.delete(f"{API}/instance/{instance_id}")
    assert response.status_code == 200
    assert response.json() == {"instanceId": instance_id, "name": "Jasmine"}

    response = http.get(f"{API}/instance/{instance_id}")
    assert response.status_code == 404
    assert "deleted" in response.json()["error"]


def test_remove_all_clients(http, instance_id):
    """Test removing every client of an account."""
    response = http.post(f"{API}/clients", json={"email": "test@example.com", "password": "supersecret"})

    assert response.status_code == 200
    assert http.get(f"{API}/instance/{instance_id}").status_code == 404


def test_conversation_operation_on_unknown_instance(http):
    """Test that conversation operations on an unknown instance are not found."""
    unknown = str(uuid.uuid4())

    response = http.post(f"{API}/instance/{unknown}/getMessages", json={"conversationId": str(uuid.uuid4())})

    assert response.status_code == 404
    assert response.json()["code"] == 404


def test_cached_bytes_never_reach_responses(app, http, instance_id):
    """Test that getMessages serializes messages that arrived with raw bytes."""
    conversation_id = str(uuid.uuid4())
    client = app.state.registry.get_instance(instance_id).client
    original = {"name": "photo.png", "type": "image/png", "length": 4}
    client.receive(AssetMetaEvent(Message(
        id=str(uuid.uuid4()), conversation=conversation_id, sender="bob", type=MessageType.ASSET_META,
        content={"original": original, "preview": b"\x89PNG\xff"},
    )))

    response = http.post(f"{API}/instance/{instance_id}/getMessages", json={"conversationId": conversation_id})

    assert response.status_code == 200
    assert response.json()[0]["content"] == {"original": original}


def test_client_failure_is_reported_with_its_message(app, http, instance_id):
    """Test that a failing messaging client surfaces as a server error carrying its message."""
    conversation_id = str(uuid.uuid4())
    app.state.registry.get_instance(instance_id).client.revoke()

    response = http.post(f"{API}/instance/{instance_id}/sendText", json={
        "conversationId": conversation_id,
        "text": "lost",
    })

    assert response.status_code == 500
    assert response.json()["code"] == 500
    assert response.json()["error"] == "Not logged in."
    assert "BackendError" in response.json()["stack"]
    assert app.state.registry.get_messages(instance_id, conversation_id) == []


@pytest.mark.asyncio
async def test_event_stream_ends_with_instance(registry, conversation_id):
    """Test that the event stream relays projected events and ends on delete."""
    instance_id = await registry.create_instance(LoginData(email="test@example.com", password="supersecret"))
    response = await stream_events(instance_id=instance_id, registry=registry)

    await registry.send_ping(instance_id, conversation_id)
    await registry.delete_instance(instance_id)

    records = [record async for record in response.body_iterator]
    assert [record["event"] for record in records] == ["content"]
    data = json.loads(records[0]["data"])
    assert data["message"]["type"] == "ping"
    assert data["message"]["conversation"] == conversation_id
