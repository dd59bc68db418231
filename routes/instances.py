"""Instance lifecycle endpoints."""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from core.messaging import LoginData
from core.registry import InstanceRegistry
from models.requests import InstanceCreationRequest, RemoveClientsRequest
from routes.dependencies import get_registry, instance_id_param

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Instance"])


@router.put("/instance")
async def put_instance(body: InstanceCreationRequest, registry: InstanceRegistry = Depends(get_registry)):
    """Create a new instance."""
    instance_id = await registry.create_instance(
        LoginData(email=body.email, password=body.password),
        backend=body.resolve_backend(),
        device_class=body.device_class,
        device_label=body.device_label,
        device_name=body.device_name,
        instance_name=body.instance_name or "",
    )
    return {"instanceId": instance_id, "name": body.instance_name or ""}


@router.get("/instances")
async def get_instances(registry: InstanceRegistry = Depends(get_registry)):
    """Get all live instances."""
    return {
        instance_id: {"instanceId": instance_id, "name": instance.name, "backend": instance.backend.name}
        for instance_id, instance in registry.get_instances().items()
    }


@router.get("/instance/{instance_id}")
async def get_instance(instance_id: str = Depends(instance_id_param),
                       registry: InstanceRegistry = Depends(get_registry)):
    """Get information about an instance."""
    return registry.get_instance(instance_id).to_dict()


@router.delete("/instance/{instance_id}")
async def delete_instance(instance_id: str = Depends(instance_id_param),
                          registry: InstanceRegistry = Depends(get_registry)):
    """Delete an instance."""
    name = registry.get_instance(instance_id).name
    await registry.delete_instance(instance_id)
    return {"instanceId": instance_id, "name": name}


@router.get("/instance/{instance_id}/fingerprint")
async def get_fingerprint(instance_id: str = Depends(instance_id_param),
                          registry: InstanceRegistry = Depends(get_registry)):
    """Get the fingerprint of an instance's identity key."""
    fingerprint = registry.get_fingerprint(instance_id)
    return {"fingerprint": fingerprint, "instanceId": instance_id, "name": registry.get_instance(instance_id).name}


@router.get("/instance/{instance_id}/clients")
async def get_clients(instance_id: str = Depends(instance_id_param),
                      registry: InstanceRegistry = Depends(get_registry)):
    """Get all protocol clients registered for an instance's account."""
    clients = await registry.get_all_clients(instance_id)
    return [client.to_dict() for client in clients]


@router.post("/clients")
async def remove_all_clients(body: RemoveClientsRequest, registry: InstanceRegistry = Depends(get_registry)):
    """Remove all protocol clients of an account."""
    await registry.remove_all_clients(body.email, body.password, body.resolve_backend())
    return {}


@router.get("/instance/{instance_id}/events")
async def stream_events(instance_id: str = Depends(instance_id_param),
                        registry: InstanceRegistry = Depends(get_registry)):
    """Stream projected events of an instance as server-sent events."""
    instance = registry.get_instance(instance_id)
    queue = instance.add_listener()

    async def event_generator():
        try:
            while True:
                event = await queue.get()
                if event is None:
                    logger.info(f"Instance {instance_id} is gone, ending its event stream")
                    break
                yield {"event": event["type"], "data": json.dumps(event)}
        except asyncio.CancelledError:
            logger.info(f"Event stream for instance {instance_id} closed")
            raise
        finally:
            instance.remove_listener(queue)

    return EventSourceResponse(event_generator())
