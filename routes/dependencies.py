"""Shared route dependencies."""

import uuid

from fastapi import Request

from core.exceptions import InvalidRequestError
from core.registry import InstanceRegistry


def get_registry(request: Request) -> InstanceRegistry:
    return request.app.state.registry


def instance_id_param(instance_id: str) -> str:
    """Instance id from the path, which must be a version 4 UUID."""
    try:
        parsed = uuid.UUID(instance_id)
    except ValueError:
        raise InvalidRequestError("Instance ID must be a UUID.")
    if parsed.version != 4:
        raise InvalidRequestError("Instance ID must be a UUID.")
    return str(parsed)
