# drive_relay/drive/session.py
import json
import logging
import secrets
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional

import httpx

from .models import DriveFile, FOLDER_MIME_TYPE
from ..errors import DriveApiError
from ..oauth.google_client import GoogleOAuthClient
from ..oauth.models import Credential
from ..oauth.storage_interfaces import AbstractCredentialStore

logger = logging.getLogger(__name__)

DRIVE_API_BASE_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE_URL = "https://www.googleapis.com/upload/drive/v3"


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive `q` expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _drive_error_from_response(response: httpx.Response) -> DriveApiError:
    """Turn a Google error payload into a structured DriveApiError."""
    message = response.text or "Unknown error"
    reason = None
    if response.content:
        try:
            error_obj = response.json().get("error", {})
            if isinstance(error_obj, dict):
                message = error_obj.get("message", message)
                errors = error_obj.get("errors") or []
                if errors and isinstance(errors[0], dict):
                    reason = errors[0].get("reason")
        except (ValueError, AttributeError):
            pass
    return DriveApiError(response.status_code, message, reason=reason)


async def _multipart_related_body(
    boundary: str,
    metadata: Dict[str, Any],
    content: AsyncIterable[bytes],
    content_type: str,
) -> AsyncIterator[bytes]:
    """Yield a multipart/related upload body without buffering the media part."""
    yield (
        f"--{boundary}\r\n"
        f"Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode("utf-8")
    async for chunk in content:
        if chunk:
            yield chunk
    yield f"\r\n--{boundary}--\r\n".encode("utf-8")


class DriveSession:
    """An authenticated view of one user's Drive, exposing the calls the relay needs."""

    def __init__(self, http_client: httpx.AsyncClient, access_token: str):
        self.http_client = http_client
        self._headers = {"Authorization": f"Bearer {access_token}"}

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_payload: Optional[Dict[str, Any]] = None,
        content: Optional[AsyncIterable[bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Make an authenticated Drive request and return the decoded JSON body.

        Raises:
            DriveApiError: On any non-2xx status
            httpx.RequestError: On transport failures
        """
        logger.debug(f"Google Drive Request: {method} {url} | Params: {params}")
        response = await self.http_client.request(
            method,
            url,
            params=params,
            json=json_payload,
            content=content,
            headers={**self._headers, **(headers or {})},
        )
        if 200 <= response.status_code < 300:
            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

        error = _drive_error_from_response(response)
        logger.error(
            f"Google Drive HTTP Error: {method} {url} - Status {response.status_code} - "
            f"Reason: {error.reason} - {error}"
        )
        raise error

    async def find_folder(self, name: str, parent_id: str) -> Optional[str]:
        """Return the id of a non-trashed folder called `name` directly under `parent_id`, if any."""
        query = (
            f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false "
            f"and name='{escape_query_value(name)}' and '{escape_query_value(parent_id)}' in parents"
        )
        result = await self._request(
            "GET",
            f"{DRIVE_API_BASE_URL}/files",
            params={"q": query, "pageSize": 1, "fields": "files(id)"}
        )
        files = result.get("files") or []
        return files[0]["id"] if files else None

    async def create_folder(self, name: str, parent_id: str) -> str:
        metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}
        result = await self._request(
            "POST",
            f"{DRIVE_API_BASE_URL}/files",
            params={"fields": "id"},
            json_payload=metadata
        )
        logger.info(f"Created Drive folder '{name}' with ID: {result.get('id')}")
        return result["id"]

    async def create_file(
        self,
        name: str,
        parent_id: str,
        content: AsyncIterable[bytes],
        content_type: str = "application/octet-stream",
    ) -> DriveFile:
        """Create a file under `parent_id`, streaming `content` as the media part."""
        boundary = f"drive_relay_{secrets.token_hex(16)}"
        metadata = {"name": name, "parents": [parent_id]}
        result = await self._request(
            "POST",
            f"{DRIVE_UPLOAD_BASE_URL}/files",
            params={"uploadType": "multipart", "fields": "id,name,mimeType,webViewLink,parents"},
            content=_multipart_related_body(boundary, metadata, content, content_type),
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        return DriveFile.model_validate(result)

    async def list_files(
        self,
        query: str,
        page_size: int,
        order_by: Optional[str] = None,
        fields: str = "files(id,name,mimeType,webViewLink,createdTime)",
    ) -> List[DriveFile]:
        params: Dict[str, Any] = {"q": query, "pageSize": page_size, "fields": fields}
        if order_by:
            params["orderBy"] = order_by
        result = await self._request("GET", f"{DRIVE_API_BASE_URL}/files", params=params)
        return [DriveFile.model_validate(item) for item in result.get("files") or []]


class DriveSessionFactory:
    """
    Builds DriveSessions from stored credentials.

    Looking up the credential happens before any network call, so a user
    without one gets CredentialNotFoundError without touching Google.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credential_store: AbstractCredentialStore,
        oauth_client: GoogleOAuthClient,
    ):
        self.http_client = http_client
        self.credential_store = credential_store
        self.oauth_client = oauth_client

    async def new_session(self, user_id: str) -> DriveSession:
        """
        Raises:
            CredentialNotFoundError: If the user never connected or disconnected
            TokenRefreshError: If an expired credential could not be refreshed
        """
        credential = await self.credential_store.get(user_id)
        if credential.is_expired():
            logger.info(f"Drive credential for user {user_id} expired, refreshing.")
            credential = await self._refresh(user_id, credential)
        return DriveSession(self.http_client, credential.access_token)

    async def _refresh(self, user_id: str, credential: Credential) -> Credential:
        refreshed = await self.oauth_client.refresh(credential)
        await self.credential_store.put(user_id, refreshed)
        logger.info(f"Refreshed and stored Drive credential for user {user_id}.")
        return refreshed
