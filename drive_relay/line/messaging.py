# drive_relay/line/messaging.py
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

LINE_API_BASE_URL = "https://api.line.me/v2/bot"
LINE_DATA_API_BASE_URL = "https://api-data.line.me/v2/bot"


class MessageContent:
    """Streamed body of a media message fetched from LINE."""

    def __init__(self, response: httpx.Response):
        self._response = response
        self.content_type = response.headers.get("content-type", "application/octet-stream")

    def iter_bytes(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()


class LineMessagingClient:
    """Minimal LINE Messaging API client: replies, rich menu links and message content."""

    def __init__(self, http_client: httpx.AsyncClient, channel_access_token: Optional[str]):
        self.http_client = http_client
        self.channel_access_token = channel_access_token
        if not channel_access_token:
            logger.warning("LINE channel access token is not configured. Replies will be rejected by LINE.")

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.channel_access_token}"}

    async def reply(self, reply_token: str, messages: List[Dict[str, Any]]) -> bool:
        """Send a reply. Failures are logged and reported as False, never raised."""
        try:
            response = await self.http_client.post(
                f"{LINE_API_BASE_URL}/message/reply",
                json={"replyToken": reply_token, "messages": messages},
                headers=self._headers,
            )
        except httpx.RequestError as e:
            logger.error(f"LINE reply request failed: {e}")
            return False
        if response.status_code != 200:
            logger.error(f"LINE reply failed with status {response.status_code}: {response.text}")
            return False
        logger.debug(f"Sent LINE reply with {len(messages)} message(s).")
        return True

    async def link_rich_menu(self, user_id: str, rich_menu_id: str) -> None:
        """
        Raises:
            httpx.HTTPError: If LINE rejects the link or cannot be reached
        """
        response = await self.http_client.post(
            f"{LINE_API_BASE_URL}/user/{user_id}/richmenu/{rich_menu_id}",
            headers=self._headers,
        )
        response.raise_for_status()
        logger.info(f"Linked rich menu {rich_menu_id} to user {user_id}.")

    @asynccontextmanager
    async def open_message_content(self, message_id: str) -> AsyncIterator[MessageContent]:
        """
        Stream the binary content of a media message.

        Raises:
            httpx.HTTPError: If LINE rejects the request or cannot be reached
        """
        async with self.http_client.stream(
            "GET",
            f"{LINE_DATA_API_BASE_URL}/message/{message_id}/content",
            headers=self._headers,
        ) as response:
            response.raise_for_status()
            yield MessageContent(response)
