# tests/conftest.py
import itertools
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest

from drive_relay.context import build_context
from drive_relay.drive.models import FOLDER_MIME_TYPE
from drive_relay.settings import Settings
from drive_relay.utils.security import generate_fernet_key

TEST_USER = "U-test-user"

_PARENT_RE = re.compile(r"'((?:[^'\\]|\\.)*)' in parents")
_NAME_RE = re.compile(r"name='((?:[^'\\]|\\.)*)'")


def _unescape(value: str) -> str:
    return value.replace("\\'", "'").replace("\\\\", "\\")


class FakeRemote:
    """
    In-memory stand-in for Google OAuth, the Drive v3 API and the LINE
    Messaging API, served through httpx.MockTransport.

    Every request is recorded under a short kind name so tests can count
    remote calls. Failure knobs are plain attributes.
    """

    def __init__(self):
        self.calls: List[Tuple[str, httpx.Request]] = []
        self.files: List[Dict[str, Any]] = []
        self.replies: List[Dict[str, Any]] = []
        self.rich_menu_links: List[Tuple[str, str]] = []
        self.revoked_tokens: List[str] = []
        self.media: Dict[str, Tuple[bytes, str]] = {}
        self._ids = itertools.count(1)
        self._clock = datetime(2025, 6, 1, tzinfo=timezone.utc)

        self.token_status = 200
        self.token_error = "invalid_grant"
        self.revoke_status = 200
        self.rich_menu_status = 200
        self.content_status = 200
        self.drive_error: Optional[Tuple[int, str]] = None
        self.upload_error: Optional[Tuple[int, str]] = None

    # --- inspection helpers ---

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)

    def drive_calls(self) -> int:
        return sum(1 for k, _ in self.calls if k.startswith("drive."))

    def reply_texts(self) -> List[str]:
        return [m.get("text", "") for r in self.replies for m in r["messages"]]

    def last_reply_messages(self) -> List[Dict[str, Any]]:
        assert self.replies, "No LINE reply was sent."
        return self.replies[-1]["messages"]

    def folders(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            f for f in self.files
            if f["mimeType"] == FOLDER_MIME_TYPE and (name is None or f["name"] == name)
        ]

    def add_file(self, name: str, parent_id: str, mime_type: str = "image/jpeg", trashed: bool = False) -> Dict[str, Any]:
        file_id = f"file-{next(self._ids)}"
        self._clock += timedelta(minutes=1)
        item = {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "parents": [parent_id],
            "trashed": trashed,
            "createdTime": self._clock.isoformat().replace("+00:00", "Z"),
            "webViewLink": f"https://drive.google.com/file/d/{file_id}/view",
        }
        self.files.append(item)
        return item

    def add_folder(self, name: str, parent_id: str = "root") -> str:
        return self.add_file(name, parent_id, mime_type=FOLDER_MIME_TYPE)["id"]

    # --- transport ---

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host, path = request.url.host, request.url.path
        if host == "oauth2.googleapis.com" and path == "/token":
            return self._token(request)
        if host == "oauth2.googleapis.com" and path == "/revoke":
            return self._revoke(request)
        if host == "www.googleapis.com" and path == "/drive/v3/files":
            if request.method == "GET":
                return self._drive_list(request)
            return self._drive_create_folder(request)
        if host == "www.googleapis.com" and path == "/upload/drive/v3/files":
            return self._drive_upload(request)
        if host == "api.line.me" and path == "/v2/bot/message/reply":
            self.calls.append(("line.reply", request))
            self.replies.append(json.loads(request.content))
            return httpx.Response(200, json={})
        if host == "api.line.me" and "/richmenu/" in path:
            self.calls.append(("line.richmenu", request))
            parts = path.split("/")
            if self.rich_menu_status == 200:
                self.rich_menu_links.append((parts[4], parts[6]))
            return httpx.Response(self.rich_menu_status, json={})
        if host == "api-data.line.me" and path.endswith("/content"):
            self.calls.append(("line.content", request))
            if self.content_status != 200:
                return httpx.Response(self.content_status, json={"message": "Authentication failed"})
            message_id = path.split("/")[4]
            body, content_type = self.media.get(message_id, (f"media-{message_id}".encode(), "image/jpeg"))
            return httpx.Response(200, content=body, headers={"Content-Type": content_type})
        raise AssertionError(f"Unexpected request: {request.method} {request.url}")

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(("token", request))
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": self.token_error})
        n = next(self._ids)
        payload = {
            "access_token": f"access-{n}",
            "expires_in": 3600,
            "scope": "https://www.googleapis.com/auth/drive.file",
            "token_type": "Bearer",
        }
        if form.get("grant_type") == "authorization_code":
            payload["refresh_token"] = f"refresh-{n}"
        return httpx.Response(200, json=payload)

    def _revoke(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(("revoke", request))
        token = parse_qs(request.content.decode())["token"][0]
        if self.revoke_status == 200:
            self.revoked_tokens.append(token)
            return httpx.Response(200)
        return httpx.Response(self.revoke_status, json={"error": "invalid_token"})

    def _drive_failure(self, error: Optional[Tuple[int, str]]) -> Optional[httpx.Response]:
        if error is None:
            return None
        status_code, reason = error
        return httpx.Response(status_code, json={
            "error": {"code": status_code, "message": f"simulated {reason}", "errors": [{"reason": reason}]}
        })

    def _drive_list(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(("drive.list", request))
        failure = self._drive_failure(self.drive_error)
        if failure is not None:
            return failure
        query = request.url.params["q"]
        page_size = int(request.url.params.get("pageSize", "100"))
        parents = {_unescape(p) for p in _PARENT_RE.findall(query)}
        name_match = _NAME_RE.search(query)

        matches = [f for f in self.files if not f["trashed"] and parents & set(f["parents"])]
        if f"mimeType!='{FOLDER_MIME_TYPE}'" in query:
            matches = [f for f in matches if f["mimeType"] != FOLDER_MIME_TYPE]
        elif f"mimeType='{FOLDER_MIME_TYPE}'" in query:
            matches = [f for f in matches if f["mimeType"] == FOLDER_MIME_TYPE]
        if name_match:
            matches = [f for f in matches if f["name"] == _unescape(name_match.group(1))]
        if request.url.params.get("orderBy") == "createdTime desc":
            matches = sorted(matches, key=lambda f: f["createdTime"], reverse=True)
        return httpx.Response(200, json={"files": matches[:page_size]})

    def _drive_create_folder(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(("drive.create_folder", request))
        failure = self._drive_failure(self.drive_error)
        if failure is not None:
            return failure
        metadata = json.loads(request.content)
        assert metadata["mimeType"] == FOLDER_MIME_TYPE
        folder_id = self.add_folder(metadata["name"], metadata["parents"][0])
        return httpx.Response(200, json={"id": folder_id})

    def _drive_upload(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(("drive.upload", request))
        failure = self._drive_failure(self.upload_error or self.drive_error)
        if failure is not None:
            return failure
        boundary = request.headers["content-type"].split("boundary=")[1]
        parts = request.content.split(f"--{boundary}".encode())
        metadata = json.loads(parts[1].split(b"\r\n\r\n", 1)[1])
        media_headers, media = parts[2].split(b"\r\n\r\n", 1)
        media_type = media_headers.decode().split("Content-Type: ")[1].strip()
        item = self.add_file(metadata["name"], metadata["parents"][0], mime_type=media_type)
        item["content"] = media[:-2]  # trailing CRLF before the closing boundary
        return httpx.Response(200, json={k: v for k, v in item.items() if k != "content"})


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        sqlite_db_path=str(tmp_path / "relay.sqlite3"),
        google_client_id="test-client-id",
        google_client_secret="test-client-secret",
        line_channel_secret="test-channel-secret",
        line_channel_access_token="test-line-token",
        line_rich_menu_connected_id="richmenu-connected",
        line_rich_menu_disconnected_id="richmenu-disconnected",
        drive_root_folder_name="AppRoot",
        encryption_key=generate_fernet_key(),
    )


@pytest.fixture
async def http_client(remote):
    async with httpx.AsyncClient(transport=httpx.MockTransport(remote)) as client:
        yield client


@pytest.fixture
async def context(settings, http_client):
    relay_context = await build_context(settings, http_client=http_client)
    yield relay_context
    await relay_context.close()


async def connect_user(context, remote: FakeRemote, user_id: str = TEST_USER) -> str:
    """Run a full handshake for `user_id` and return the nonce that was used."""
    url = await context.authorization_flow.begin_authorization(user_id)
    nonce = parse_qs(httpx.URL(url).query.decode())["state"][0]
    await context.authorization_flow.complete_authorization(nonce, "auth-code")
    return nonce
