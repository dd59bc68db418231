"""Per-instance conversation endpoints."""

from fastapi import APIRouter, Depends

from core.registry import InstanceRegistry
from models.requests import (
    ArchiveRequest,
    AvailabilityRequest,
    ConfirmationRequest,
    ConversationRequest,
    DeletionRequest,
    FileRequest,
    ImageRequest,
    LocationRequest,
    MuteRequest,
    PingRequest,
    ReactionRequest,
    TextRequest,
    TypingRequest,
    UpdateTextRequest,
    decode_base64,
)
from routes.dependencies import get_registry, instance_id_param

router = APIRouter(prefix="/instance/{instance_id}", tags=["Conversation"])


def sent_response(registry: InstanceRegistry, instance_id: str, message_id: str):
    return {
        "instanceId": instance_id,
        "messageId": message_id,
        "name": registry.get_instance(instance_id).name,
    }


@router.post("/archive")
async def archive_conversation(body: ArchiveRequest, instance_id: str = Depends(instance_id_param),
                               registry: InstanceRegistry = Depends(get_registry)):
    """Archive or unarchive a conversation."""
    name = await registry.toggle_archive_conversation(instance_id, str(body.conversation_id), body.archive)
    return {"instanceId": instance_id, "name": name}


@router.post("/mute")
async def mute_conversation(body: MuteRequest, instance_id: str = Depends(instance_id_param),
                            registry: InstanceRegistry = Depends(get_registry)):
    """Mute or unmute a conversation."""
    name = await registry.toggle_mute_conversation(instance_id, str(body.conversation_id), body.mute)
    return {"instanceId": instance_id, "name": name}


@router.post("/clear")
async def clear_conversation(body: ConversationRequest, instance_id: str = Depends(instance_id_param),
                             registry: InstanceRegistry = Depends(get_registry)):
    """Clear a conversation."""
    name = await registry.clear_conversation(instance_id, str(body.conversation_id))
    return {"instanceId": instance_id, "name": name}


@router.post("/delete")
async def delete_message_local(body: DeletionRequest, instance_id: str = Depends(instance_id_param),
                               registry: InstanceRegistry = Depends(get_registry)):
    """Delete a message on this device only."""
    name = await registry.delete_message_local(instance_id, str(body.conversation_id), str(body.message_id))
    return {"instanceId": instance_id, "name": name}


@router.post("/deleteEverywhere")
async def delete_message_everyone(body: DeletionRequest, instance_id: str = Depends(instance_id_param),
                                  registry: InstanceRegistry = Depends(get_registry)):
    """Delete a message for everyone."""
    name = await registry.delete_message_everyone(instance_id, str(body.conversation_id), str(body.message_id))
    return {"instanceId": instance_id, "name": name}


@router.post("/getMessages")
async def get_messages(body: ConversationRequest, instance_id: str = Depends(instance_id_param),
                       registry: InstanceRegistry = Depends(get_registry)):
    """Get all cached messages of a conversation."""
    messages = registry.get_messages(instance_id, str(body.conversation_id))
    return [message.to_dict() for message in messages]


@router.post("/sendText")
async def send_text(body: TextRequest, instance_id: str = Depends(instance_id_param),
                    registry: InstanceRegistry = Depends(get_registry)):
    """Send a text message."""
    message_id = await registry.send_text(
        instance_id,
        str(body.conversation_id),
        body.text,
        expire_after_millis=body.message_timer,
        **body.text_options(),
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/updateText")
async def update_text(body: UpdateTextRequest, instance_id: str = Depends(instance_id_param),
                      registry: InstanceRegistry = Depends(get_registry)):
    """Edit a previously sent text message."""
    message_id = await registry.send_edited_text(
        instance_id,
        str(body.conversation_id),
        str(body.first_message_id),
        body.text,
        **body.text_options(),
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/sendLocation")
async def send_location(body: LocationRequest, instance_id: str = Depends(instance_id_param),
                        registry: InstanceRegistry = Depends(get_registry)):
    """Send a location."""
    message_id = await registry.send_location(
        instance_id,
        str(body.conversation_id),
        body.latitude,
        body.longitude,
        name=body.location_name,
        zoom=body.zoom,
        expects_read_confirmation=body.expects_read_confirmation,
        legal_hold_status=body.legal_hold_status,
        expire_after_millis=body.message_timer,
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/sendImage")
async def send_image(body: ImageRequest, instance_id: str = Depends(instance_id_param),
                     registry: InstanceRegistry = Depends(get_registry)):
    """Send an image."""
    image = {
        "data": decode_base64(body.data),
        "height": body.height,
        "width": body.width,
        "type": body.type,
    }
    message_id = await registry.send_image(
        instance_id,
        str(body.conversation_id),
        image,
        expects_read_confirmation=body.expects_read_confirmation,
        legal_hold_status=body.legal_hold_status,
        expire_after_millis=body.message_timer,
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/sendFile")
async def send_file(body: FileRequest, instance_id: str = Depends(instance_id_param),
                    registry: InstanceRegistry = Depends(get_registry)):
    """Send a file."""
    data = decode_base64(body.data)
    metadata = {"name": body.file_name, "type": body.type, "length": len(data)}
    message_id = await registry.send_file(
        instance_id,
        str(body.conversation_id),
        {"data": data},
        metadata,
        expects_read_confirmation=body.expects_read_confirmation,
        legal_hold_status=body.legal_hold_status,
        expire_after_millis=body.message_timer,
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/sendPing")
async def send_ping(body: PingRequest, instance_id: str = Depends(instance_id_param),
                    registry: InstanceRegistry = Depends(get_registry)):
    """Send a ping."""
    message_id = await registry.send_ping(
        instance_id,
        str(body.conversation_id),
        expects_read_confirmation=body.expects_read_confirmation,
        legal_hold_status=body.legal_hold_status,
        expire_after_millis=body.message_timer,
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/sendReaction")
async def send_reaction(body: ReactionRequest, instance_id: str = Depends(instance_id_param),
                        registry: InstanceRegistry = Depends(get_registry)):
    """React to a message."""
    message_id = await registry.send_reaction(
        instance_id, str(body.conversation_id), str(body.original_message_id), body.type
    )
    return sent_response(registry, instance_id, message_id)


@router.post("/sendTyping")
async def send_typing(body: TypingRequest, instance_id: str = Depends(instance_id_param),
                      registry: InstanceRegistry = Depends(get_registry)):
    """Start or stop typing in a conversation."""
    name = await registry.send_typing(instance_id, str(body.conversation_id), body.status)
    return {"instanceId": instance_id, "name": name}


@router.post("/sendConfirmationDelivered")
async def send_confirmation_delivered(body: ConfirmationRequest, instance_id: str = Depends(instance_id_param),
                                      registry: InstanceRegistry = Depends(get_registry)):
    """Confirm delivery of messages."""
    name = await registry.send_confirmation_delivered(
        instance_id, str(body.conversation_id), str(body.first_message_id), body.more_ids()
    )
    return {"instanceId": instance_id, "name": name}


@router.post("/sendConfirmationRead")
async def send_confirmation_read(body: ConfirmationRequest, instance_id: str = Depends(instance_id_param),
                                 registry: InstanceRegistry = Depends(get_registry)):
    """Confirm that messages were read."""
    name = await registry.send_confirmation_read(
        instance_id, str(body.conversation_id), str(body.first_message_id), body.more_ids()
    )
    return {"instanceId": instance_id, "name": name}


@router.post("/sendEphemeralConfirmationDelivered")
async def send_ephemeral_confirmation_delivered(body: ConfirmationRequest,
                                                instance_id: str = Depends(instance_id_param),
                                                registry: InstanceRegistry = Depends(get_registry)):
    """Confirm delivery of ephemeral messages and delete them for their senders."""
    name = await registry.send_ephemeral_confirmation_delivered(
        instance_id, str(body.conversation_id), str(body.first_message_id), body.more_ids()
    )
    return {"instanceId": instance_id, "name": name}


@router.post("/sendEphemeralConfirmationRead")
async def send_ephemeral_confirmation_read(body: ConfirmationRequest,
                                           instance_id: str = Depends(instance_id_param),
                                           registry: InstanceRegistry = Depends(get_registry)):
    """Confirm reading ephemeral messages and delete them for their senders."""
    name = await registry.send_ephemeral_confirmation_read(
        instance_id, str(body.conversation_id), str(body.first_message_id), body.more_ids()
    )
    return {"instanceId": instance_id, "name": name}


@router.post("/sendSessionReset")
async def send_session_reset(body: ConversationRequest, instance_id: str = Depends(instance_id_param),
                             registry: InstanceRegistry = Depends(get_registry)):
    """Reset the cryptographic session with a conversation."""
    message_id = await registry.reset_session(instance_id, str(body.conversation_id))
    return sent_response(registry, instance_id, message_id)


@router.post("/availability")
async def set_availability(body: AvailabilityRequest, instance_id: str = Depends(instance_id_param),
                           registry: InstanceRegistry = Depends(get_registry)):
    """Set the availability of the instance's user."""
    name = await registry.set_availability(instance_id, str(body.team_id), body.type)
    return {"instanceId": instance_id, "name": name}
