# drive_relay/bot/router.py
import logging
from typing import Any, Dict, Iterable, Optional

from ..classifier import FailureKind, classify_failure
from ..drive.session import DriveSessionFactory
from ..drive.uploader import UploadOrchestrator
from ..errors import CredentialNotFoundError
from ..hooks import RichMenuSync
from ..oauth.flow import AuthorizationFlow
from ..line.messaging import LineMessagingClient
from ..line.events import (
    AudioMessageContent,
    BeaconEvent,
    FileMessageContent,
    FollowEvent,
    ImageMessageContent,
    JoinEvent,
    LeaveEvent,
    MediaMessageContent,
    MemberJoinedEvent,
    MemberLeftEvent,
    MessageEvent,
    PostbackEvent,
    StickerMessageContent,
    TextMessageContent,
    UnfollowEvent,
    UnsupportedEvent,
    VideoMessageContent,
    WebhookEvent,
)
from ..line import messages

logger = logging.getLogger(__name__)


def upload_filename(content: MediaMessageContent) -> str:
    """Drive filename for a relayed message; the message id keeps names unique."""
    match content:
        case ImageMessageContent():
            return f"line-bot-upload-{content.id}.jpg"
        case VideoMessageContent():
            return f"line-bot-upload-{content.id}.mp4"
        case AudioMessageContent():
            return f"line-bot-upload-{content.id}.m4a"
        case FileMessageContent():
            return content.file_name
    raise TypeError(f"Not a media message: {type(content).__name__}")


class EventRouter:
    """
    Turns webhook events into replies.

    Events are handled one at a time and carry no state between them other
    than what lives in the credential and state stores. Every failure is
    caught per event and answered with the most helpful reply available;
    nothing propagates out of `dispatch`.
    """

    def __init__(
        self,
        line_client: LineMessagingClient,
        authorization_flow: AuthorizationFlow,
        session_factory: DriveSessionFactory,
        uploader: UploadOrchestrator,
        rich_menu_sync: RichMenuSync,
        recent_files_limit: int = 5,
    ):
        self.line_client = line_client
        self.flow = authorization_flow
        self.session_factory = session_factory
        self.uploader = uploader
        self.rich_menu_sync = rich_menu_sync
        self.recent_files_limit = recent_files_limit

    async def dispatch(self, events: Iterable[WebhookEvent]) -> None:
        for event in events:
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.error(f"Unhandled error processing '{event.type}' event: {e}", exc_info=True)

    async def handle_event(self, event: WebhookEvent) -> None:
        match event:
            case MessageEvent(message=TextMessageContent() as content):
                await self._handle_text(event, content)
            case MessageEvent(message=StickerMessageContent() as content):
                await self._reply(event, messages.text_message(messages.TEXT_STICKER.format(
                    sticker_id=content.sticker_id,
                    resource_type=content.sticker_resource_type,
                )))
            case MessageEvent(message=ImageMessageContent() | VideoMessageContent() | AudioMessageContent() | FileMessageContent() as content):
                await self._handle_media(event, content)
            case MessageEvent():
                logger.info(f"Ignoring unsupported message type '{event.message.type}'.")
            case FollowEvent():
                await self._handle_follow(event)
            case UnfollowEvent() | JoinEvent() | LeaveEvent():
                logger.info(f"Received {event.type} event from source {event.source}.")
            case MemberJoinedEvent():
                logger.info(f"Members joined: {[m.user_id for m in event.joined.members]}")
            case MemberLeftEvent():
                logger.info(f"Members left: {[m.user_id for m in event.left.members]}")
            case BeaconEvent():
                logger.info(f"Beacon event: hwid={event.beacon.hwid}, type={event.beacon.type}")
            case PostbackEvent():
                logger.info(f"Postback event with data '{event.postback.data}'.")
            case UnsupportedEvent():
                logger.info(f"Ignoring unsupported event type '{event.type}'.")

    async def _reply(self, event: MessageEvent, *reply_messages: Dict[str, Any]) -> None:
        await self.line_client.reply(event.reply_token, list(reply_messages))

    async def _handle_text(self, event: MessageEvent, content: TextMessageContent) -> None:
        command = content.text.strip()
        if command == messages.CMD_CONNECT:
            handler = self._connect
        elif command == messages.CMD_RECENT_FILES:
            handler = self._recent_files
        elif command == messages.CMD_DISCONNECT:
            handler = self._disconnect
        elif command == messages.CMD_RECONNECT:
            handler = self._reconnect
        else:
            await self._reply(event, messages.text_message(content.text))
            return

        user_id = event.user_id
        if not user_id:
            await self._reply(event, messages.text_message(messages.TEXT_UNIDENTIFIED_USER))
            return
        await handler(event, user_id)

    async def _connect(self, event: MessageEvent, user_id: str) -> None:
        try:
            url = await self.flow.begin_authorization(user_id)
        except Exception as e:
            logger.error(f"Failed to start Drive authorization for user {user_id}: {e}", exc_info=True)
            await self._reply(event, messages.text_message(messages.TEXT_CONNECT_FAILED))
            return
        await self._reply(event, messages.text_message(messages.TEXT_AUTHORIZE.format(url=url)))

    async def _recent_files(self, event: MessageEvent, user_id: str) -> None:
        try:
            session = await self.session_factory.new_session(user_id)
            files = await self.uploader.list_recent(session, self.recent_files_limit)
        except Exception as e:
            await self._reply(event, self._recovery_reply(e, user_id, messages.TEXT_RECENT_FAILED))
            return

        if not files:
            await self._reply(event, messages.text_message(messages.TEXT_NO_FILES, messages.CONNECTED_QUICK_REPLIES))
            return
        await self._reply(event, messages.recent_files_carousel(files))

    async def _disconnect(self, event: MessageEvent, user_id: str) -> None:
        try:
            await self.flow.revoke(user_id)
        except CredentialNotFoundError:
            logger.info(f"Disconnect requested by user {user_id} with no stored credential.")
            await self._reply(event, messages.text_message(messages.TEXT_NOT_CONNECTED))
            return
        except Exception as e:
            logger.error(f"Failed to disconnect user {user_id}: {e}", exc_info=True)
            await self._reply(event, messages.text_message(messages.TEXT_DISCONNECT_FAILED))
            return
        await self._reply(event, messages.text_message(messages.TEXT_DISCONNECTED))

    async def _reconnect(self, event: MessageEvent, user_id: str) -> None:
        try:
            url = await self.flow.reconnect(user_id)
        except Exception as e:
            logger.error(f"Failed to restart Drive authorization for user {user_id}: {e}", exc_info=True)
            await self._reply(event, messages.text_message(messages.TEXT_RECONNECT_FAILED))
            return
        await self._reply(event, messages.text_message(messages.TEXT_REAUTHORIZE.format(url=url)))

    async def _handle_media(self, event: MessageEvent, content: MediaMessageContent) -> None:
        user_id = event.user_id
        if not user_id:
            await self._reply(event, messages.text_message(messages.TEXT_UNIDENTIFIED_USER))
            return

        filename = upload_filename(content)
        try:
            # The session comes first so a missing credential is known before LINE is asked for the bytes
            session = await self.session_factory.new_session(user_id)
            async with self.line_client.open_message_content(content.id) as media:
                result = await self.uploader.upload(session, media.iter_bytes(), filename, media.content_type)
        except Exception as e:
            await self._reply(event, self._recovery_reply(e, user_id, messages.TEXT_UPLOAD_FAILED))
            return
        await self._reply(event, messages.upload_success(result.view_url))

    def _recovery_reply(self, exc: Exception, user_id: str, failure_text: str) -> Dict[str, Any]:
        kind = classify_failure(exc)
        if kind is FailureKind.NO_CREDENTIAL:
            logger.info(f"User {user_id} has no Drive credential; prompting to connect.")
            return messages.connect_prompt()
        if kind is FailureKind.AUTH_REJECTED:
            logger.warning(f"Drive authorization rejected for user {user_id}: {exc}")
            return messages.reconnect_prompt()
        logger.error(f"Drive operation failed for user {user_id}: {exc}", exc_info=exc)
        return messages.text_message(failure_text)

    async def _handle_follow(self, event: FollowEvent) -> None:
        user_id: Optional[str] = event.user_id
        logger.info(f"Follow event from user {user_id}.")
        if not user_id:
            return
        try:
            state = await self.flow.connection_state(user_id)
            await self.rich_menu_sync(user_id, state)
        except Exception as e:
            logger.warning(f"Could not link rich menu for new follower {user_id}: {e}")
