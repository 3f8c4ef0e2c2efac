# drive_relay/line/__init__.py

"""LINE Messaging API integration: webhook events, replies and rich menus."""

from .events import (
    Source,
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
    TextMessageContent,
    ImageMessageContent,
    VideoMessageContent,
    AudioMessageContent,
    FileMessageContent,
    StickerMessageContent,
    LocationMessageContent,
    UnsupportedMessageContent,
    WebhookEvent,
    parse_event,
)
from .webhook import InvalidWebhookBodyError, parse_webhook_body
from .messaging import LineMessagingClient, MessageContent

__all__ = [
    "Source",
    "MessageEvent",
    "FollowEvent",
    "UnfollowEvent",
    "JoinEvent",
    "LeaveEvent",
    "MemberJoinedEvent",
    "MemberLeftEvent",
    "BeaconEvent",
    "PostbackEvent",
    "UnsupportedEvent",
    "TextMessageContent",
    "ImageMessageContent",
    "VideoMessageContent",
    "AudioMessageContent",
    "FileMessageContent",
    "StickerMessageContent",
    "LocationMessageContent",
    "UnsupportedMessageContent",
    "WebhookEvent",
    "parse_event",
    "InvalidWebhookBodyError",
    "parse_webhook_body",
    "LineMessagingClient",
    "MessageContent",
]
