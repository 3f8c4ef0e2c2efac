# drive_relay/line/events.py
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Literal, Optional, Union


class LineModel(BaseModel):
    """LINE sends camelCase JSON; fields here are snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Source(LineModel):
    """Where an event came from. `user_id` is present for users in any source type who consented."""
    type: str = Field(description="One of 'user', 'group', 'room'.")
    user_id: Optional[str] = None
    group_id: Optional[str] = None
    room_id: Optional[str] = None


# --- Message contents ---

class TextMessageContent(LineModel):
    type: Literal["text"]
    id: str
    text: str


class ImageMessageContent(LineModel):
    type: Literal["image"]
    id: str


class VideoMessageContent(LineModel):
    type: Literal["video"]
    id: str


class AudioMessageContent(LineModel):
    type: Literal["audio"]
    id: str


class FileMessageContent(LineModel):
    type: Literal["file"]
    id: str
    file_name: str
    file_size: Optional[int] = None


class StickerMessageContent(LineModel):
    type: Literal["sticker"]
    id: str
    package_id: Optional[str] = None
    sticker_id: str
    sticker_resource_type: Optional[str] = None


class LocationMessageContent(LineModel):
    type: Literal["location"]
    id: str
    title: Optional[str] = None
    address: Optional[str] = None
    latitude: float
    longitude: float


class UnsupportedMessageContent(LineModel):
    """Any message kind the relay does not act on."""
    type: str
    id: Optional[str] = None


KnownMessageContent = Annotated[
    Union[
        TextMessageContent,
        ImageMessageContent,
        VideoMessageContent,
        AudioMessageContent,
        FileMessageContent,
        StickerMessageContent,
        LocationMessageContent,
    ],
    Field(discriminator="type"),
]
_MESSAGE_CONTENT_ADAPTER: TypeAdapter = TypeAdapter(KnownMessageContent)
KNOWN_MESSAGE_TYPES = frozenset({"text", "image", "video", "audio", "file", "sticker", "location"})

MediaMessageContent = Union[ImageMessageContent, VideoMessageContent, AudioMessageContent, FileMessageContent]

MessageContent = Union[
    TextMessageContent,
    ImageMessageContent,
    VideoMessageContent,
    AudioMessageContent,
    FileMessageContent,
    StickerMessageContent,
    LocationMessageContent,
    UnsupportedMessageContent,
]


def parse_message_content(raw: Any) -> Any:
    if isinstance(raw, dict):
        if raw.get("type") in KNOWN_MESSAGE_TYPES:
            return _MESSAGE_CONTENT_ADAPTER.validate_python(raw)
        return UnsupportedMessageContent.model_validate(raw)
    return raw


# --- Events ---

class BaseEvent(LineModel):
    timestamp: Optional[int] = None
    source: Optional[Source] = None
    webhook_event_id: Optional[str] = None
    mode: Optional[str] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.source.user_id if self.source else None


class MessageEvent(BaseEvent):
    type: Literal["message"]
    reply_token: str
    message: MessageContent

    @field_validator("message", mode="before")
    @classmethod
    def _parse_message(cls, value: Any) -> Any:
        return parse_message_content(value)


class FollowEvent(BaseEvent):
    type: Literal["follow"]
    reply_token: Optional[str] = None


class UnfollowEvent(BaseEvent):
    type: Literal["unfollow"]


class JoinEvent(BaseEvent):
    type: Literal["join"]
    reply_token: Optional[str] = None


class LeaveEvent(BaseEvent):
    type: Literal["leave"]


class Members(LineModel):
    members: List[Source] = Field(default_factory=list)


class MemberJoinedEvent(BaseEvent):
    type: Literal["memberJoined"]
    reply_token: Optional[str] = None
    joined: Members = Field(default_factory=Members)


class MemberLeftEvent(BaseEvent):
    type: Literal["memberLeft"]
    left: Members = Field(default_factory=Members)


class Beacon(LineModel):
    hwid: str
    type: str
    dm: Optional[str] = None


class BeaconEvent(BaseEvent):
    type: Literal["beacon"]
    reply_token: Optional[str] = None
    beacon: Beacon


class Postback(LineModel):
    data: str
    params: Optional[Dict[str, Any]] = None


class PostbackEvent(BaseEvent):
    type: Literal["postback"]
    reply_token: Optional[str] = None
    postback: Postback


class UnsupportedEvent(BaseEvent):
    """Any event type the relay does not recognise; logged and ignored."""
    type: str


KnownEvent = Annotated[
    Union[
        MessageEvent,
        FollowEvent,
        UnfollowEvent,
        JoinEvent,
        LeaveEvent,
        MemberJoinedEvent,
        MemberLeftEvent,
        BeaconEvent,
        PostbackEvent,
    ],
    Field(discriminator="type"),
]
_EVENT_ADAPTER: TypeAdapter = TypeAdapter(KnownEvent)
KNOWN_EVENT_TYPES = frozenset({
    "message", "follow", "unfollow", "join", "leave",
    "memberJoined", "memberLeft", "beacon", "postback",
})

WebhookEvent = Union[
    MessageEvent,
    FollowEvent,
    UnfollowEvent,
    JoinEvent,
    LeaveEvent,
    MemberJoinedEvent,
    MemberLeftEvent,
    BeaconEvent,
    PostbackEvent,
    UnsupportedEvent,
]


def parse_event(raw: Dict[str, Any]) -> WebhookEvent:
    """
    Parse one webhook event.

    Raises:
        pydantic.ValidationError: If a known event type is malformed
    """
    if raw.get("type") in KNOWN_EVENT_TYPES:
        return _EVENT_ADAPTER.validate_python(raw)
    return UnsupportedEvent.model_validate(raw)
