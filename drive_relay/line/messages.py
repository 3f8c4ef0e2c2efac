# drive_relay/line/messages.py
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..drive.models import DriveFile

CMD_CONNECT = "/connect_drive"
CMD_RECENT_FILES = "/recent_files"
CMD_DISCONNECT = "/disconnect_drive"
CMD_RECONNECT = "/reconnect"

TEXT_AUTHORIZE = "Please authorize this app to upload files to your Google Drive: {url}"
TEXT_REAUTHORIZE = "Please re-authorize this app to upload files to your Google Drive: {url}"
TEXT_CONNECT_FIRST = "Please connect your Google Drive account first."
TEXT_RECONNECT_NEEDED = (
    "Your Google Drive authorization seems to have expired.\n"
    "Please run /reconnect to connect again."
)
TEXT_NO_FILES = "You haven't uploaded any files yet."
TEXT_DISCONNECTED = "Successfully disconnected from Google Drive."
TEXT_NOT_CONNECTED = "Your account is not connected to Google Drive."
TEXT_DISCONNECT_FAILED = "An error occurred while disconnecting. Please try again later."
TEXT_CONNECT_FAILED = "An error occurred while preparing the Google Drive connection. Please try again later."
TEXT_RECONNECT_FAILED = "An error occurred while trying to reconnect. Please try '/connect_drive' manually."
TEXT_UPLOADED = "File uploaded to Google Drive: {url}"
TEXT_UPLOAD_FAILED = "Sorry, the file could not be uploaded to Google Drive. Please try again later."
TEXT_RECENT_FAILED = "Sorry, your recent files could not be retrieved. Please try again later."
TEXT_STICKER = "Sticker message: sticker id is {sticker_id}, stickerResourceType is {resource_type}"
TEXT_UNIDENTIFIED_USER = "Sorry, I can't tell who sent this message. Please talk to me in a one-on-one chat."

QuickReplyOption = Tuple[str, str]

CONNECTED_QUICK_REPLIES: List[QuickReplyOption] = [
    ("Recent files", CMD_RECENT_FILES),
    ("Disconnect", CMD_DISCONNECT),
]


def quick_reply(options: Sequence[QuickReplyOption]) -> Dict[str, Any]:
    """Quick reply buttons that each send a command text when tapped."""
    return {
        "items": [
            {"type": "action", "action": {"type": "message", "label": label, "text": text}}
            for label, text in options
        ]
    }


def text_message(text: str, quick_replies: Optional[Sequence[QuickReplyOption]] = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"type": "text", "text": text}
    if quick_replies:
        message["quickReply"] = quick_reply(quick_replies)
    return message


def connect_prompt() -> Dict[str, Any]:
    return text_message(TEXT_CONNECT_FIRST, [("Connect Google Drive", CMD_CONNECT)])


def reconnect_prompt() -> Dict[str, Any]:
    return text_message(TEXT_RECONNECT_NEEDED, [("Reconnect", CMD_RECONNECT)])


def upload_success(view_url: Optional[str]) -> Dict[str, Any]:
    return text_message(TEXT_UPLOADED.format(url=view_url or "(link unavailable)"), CONNECTED_QUICK_REPLIES)


def _file_bubble(file: DriveFile) -> Dict[str, Any]:
    bubble: Dict[str, Any] = {
        "type": "bubble",
        "body": {
            "type": "box",
            "layout": "vertical",
            "contents": [
                {"type": "text", "text": "Recent Upload", "weight": "bold", "size": "sm", "color": "#1DB446"},
                {"type": "text", "text": file.name or file.id, "weight": "bold", "size": "xl", "margin": "md", "wrap": True},
            ],
        },
    }
    if file.web_view_link:
        bubble["footer"] = {
            "type": "box",
            "layout": "vertical",
            "spacing": "sm",
            "contents": [
                {
                    "type": "button",
                    "style": "link",
                    "height": "sm",
                    "action": {"type": "uri", "label": "Open in Drive", "uri": file.web_view_link},
                }
            ],
        }
    return bubble


def recent_files_carousel(files: Sequence[DriveFile]) -> Dict[str, Any]:
    """Flex carousel with one bubble per file. Callers handle the empty case."""
    if not files:
        raise ValueError("A carousel needs at least one file.")
    return {
        "type": "flex",
        "altText": "Here are your recent files",
        "contents": {"type": "carousel", "contents": [_file_bubble(f) for f in files]},
        "quickReply": quick_reply(CONNECTED_QUICK_REPLIES),
    }
