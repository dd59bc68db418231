"""Request bodies accepted by the HTTP API."""

import base64
import binascii
from typing import Any, Dict, List, Optional

from pydantic import UUID4, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.messaging import (
    AvailabilityType,
    BackendData,
    ClientClassification,
    LegalHoldStatus,
    ReactionType,
    TypingStatus,
)


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def decode_base64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 data: {e}") from e


class CustomBackend(RequestModel):
    name: str = Field(min_length=1)
    rest: str = Field(min_length=1)
    ws: str = Field(min_length=1)

    def to_backend(self) -> BackendData:
        return BackendData(name=self.name, rest=self.rest, ws=self.ws)


class BackendSelection(RequestModel):
    backend: Optional[str] = None
    custom_backend: Optional[CustomBackend] = None

    def resolve_backend(self):
        """Explicit endpoints win over a backend name."""
        if self.custom_backend is not None:
            return self.custom_backend.to_backend()
        return self.backend


class InstanceCreationRequest(BackendSelection):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    device_class: Optional[ClientClassification] = None
    device_label: Optional[str] = None
    device_name: Optional[str] = None
    instance_name: Optional[str] = None


class RemoveClientsRequest(BackendSelection):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ConversationRequest(RequestModel):
    conversation_id: UUID4


class ArchiveRequest(ConversationRequest):
    archive: bool


class MuteRequest(ConversationRequest):
    mute: bool


class DeletionRequest(ConversationRequest):
    message_id: UUID4


class TweetMeta(RequestModel):
    author: Optional[str] = None
    username: Optional[str] = None


class LinkPreviewImage(RequestModel):
    data: str
    height: int
    width: int
    type: str

    def to_content(self) -> Dict[str, Any]:
        return {
            'data': decode_base64(self.data),
            'height': self.height,
            'width': self.width,
            'type': self.type,
        }


class LinkPreviewMeta(RequestModel):
    url: str
    url_offset: int
    permanent_url: Optional[str] = None
    summary: Optional[str] = None
    title: Optional[str] = None
    tweet: Optional[TweetMeta] = None
    image: Optional[LinkPreviewImage] = None

    def to_content(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'url_offset': self.url_offset,
            'permanent_url': self.permanent_url,
            'summary': self.summary,
            'title': self.title,
            'tweet': self.tweet.model_dump(by_alias=True, exclude_none=True) if self.tweet else None,
            'image': self.image.to_content() if self.image else None,
        }


class MentionMeta(RequestModel):
    user_id: UUID4
    start: int
    length: int

    def to_content(self) -> Dict[str, Any]:
        return {'userId': str(self.user_id), 'start': self.start, 'length': self.length}


class QuoteMeta(RequestModel):
    quoted_message_id: UUID4
    quoted_message_sha256: str = Field(pattern=r"^[A-Fa-f0-9]{64}$")

    def to_content(self) -> Dict[str, Any]:
        return {
            'quotedMessageId': str(self.quoted_message_id),
            'quotedMessageSha256': self.quoted_message_sha256.lower(),
        }


class SendOptions(ConversationRequest):
    expects_read_confirmation: bool = False
    legal_hold_status: Optional[LegalHoldStatus] = None
    message_timer: int = Field(default=0, ge=0)


class TextRequest(SendOptions):
    text: str = Field(min_length=1)
    link_preview: Optional[LinkPreviewMeta] = None
    mentions: Optional[List[MentionMeta]] = None
    quote: Optional[QuoteMeta] = None

    def text_options(self) -> Dict[str, Any]:
        return {
            'link_preview': self.link_preview.to_content() if self.link_preview else None,
            'mentions': [m.to_content() for m in self.mentions] if self.mentions else None,
            'quote': self.quote.to_content() if self.quote else None,
            'expects_read_confirmation': self.expects_read_confirmation,
            'legal_hold_status': self.legal_hold_status,
        }


class UpdateTextRequest(TextRequest):
    first_message_id: UUID4


class LocationRequest(SendOptions):
    latitude: float
    longitude: float
    location_name: Optional[str] = None
    zoom: Optional[int] = None


class ImageRequest(SendOptions):
    data: str
    height: int = Field(gt=0)
    width: int = Field(gt=0)
    type: str = Field(min_length=1)

    @field_validator('data')
    @classmethod
    def check_data(cls, value: str) -> str:
        decode_base64(value)
        return value


class FileRequest(SendOptions):
    data: str
    file_name: str = Field(min_length=1)
    type: str = Field(min_length=1)

    @field_validator('data')
    @classmethod
    def check_data(cls, value: str) -> str:
        decode_base64(value)
        return value


class PingRequest(SendOptions):
    pass


class ReactionRequest(ConversationRequest):
    original_message_id: UUID4
    type: ReactionType


class TypingRequest(ConversationRequest):
    status: TypingStatus


class ConfirmationRequest(ConversationRequest):
    first_message_id: UUID4
    more_message_ids: Optional[List[UUID4]] = None

    def more_ids(self) -> Optional[List[str]]:
        if not self.more_message_ids:
            return None
        return [str(message_id) for message_id in self.more_message_ids]


class AvailabilityRequest(RequestModel):
    team_id: UUID4
    type: AvailabilityType
