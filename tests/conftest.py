"""Shared fixtures for the test suite."""

import uuid

import pytest
from fastapi.testclient import TestClient

from core.config import Config
from core.loopback import LoopbackClient, LoopbackServer
from core.registry import InstanceRegistry
from main import create_app


@pytest.fixture
def server():
    """Fresh simulated backend."""
    return LoopbackServer()


@pytest.fixture
def client_factory(server):
    """Factory creating loopback clients against the test backend."""
    created = []

    def factory(backend, store_name):
        client = LoopbackClient(backend, store_name, server=server)
        created.append(client)
        return client

    factory.created = created
    return factory


@pytest.fixture
def registry(client_factory):
    """Registry with room for three instances."""
    return InstanceRegistry(client_factory, max_instances=3, message_cache_size=100)


@pytest.fixture
def conversation_id():
    return str(uuid.uuid4())


@pytest.fixture
def app(client_factory):
    """Application wired to the test backend."""
    config = Config({"MAX_INSTANCES": "5", "LOG_LEVEL": "WARNING"})
    return create_app(config, client_factory=client_factory)


@pytest.fixture
def http(app):
    """HTTP client that reports server errors as responses."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
