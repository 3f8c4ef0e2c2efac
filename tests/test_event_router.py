# tests/test_event_router.py
from typing import Any, Dict

from drive_relay.drive.models import FOLDER_MIME_TYPE
from drive_relay.line.events import parse_event
from drive_relay.line import messages

from .conftest import TEST_USER, connect_user


def _text_event(text: str, user_id: str = TEST_USER) -> Dict[str, Any]:
    return {
        "type": "message",
        "replyToken": "reply-token",
        "timestamp": 1718000000000,
        "mode": "active",
        "source": {"type": "user", "userId": user_id},
        "message": {"type": "text", "id": "100", "text": text},
    }


def _media_event(message: Dict[str, Any], user_id: str = TEST_USER) -> Dict[str, Any]:
    return {
        "type": "message",
        "replyToken": "reply-token",
        "source": {"type": "user", "userId": user_id},
        "message": message,
    }


async def _dispatch(context, raw: Dict[str, Any]) -> None:
    await context.event_router.dispatch([parse_event(raw)])


async def test_connect_replies_with_authorization_link(context, remote):
    await _dispatch(context, _text_event("/connect_drive"))
    [reply] = remote.reply_texts()
    assert reply.startswith("Please authorize this app")
    assert "https://accounts.google.com/o/oauth2/auth?" in reply


async def test_other_text_is_echoed_verbatim(context, remote):
    await _dispatch(context, _text_event("  hello /connect_drive  "))
    assert remote.reply_texts() == ["  hello /connect_drive  "]
    assert remote.count("token") == 0


async def test_recent_files_without_credential_prompts_connect(context, remote):
    await _dispatch(context, _text_event("/recent_files"))

    [message] = remote.last_reply_messages()
    assert message["text"] == messages.TEXT_CONNECT_FIRST
    assert message["quickReply"]["items"][0]["action"]["text"] == "/connect_drive"
    assert remote.drive_calls() == 0, "No Drive call may happen without a credential."


async def test_recent_files_empty_state(context, remote):
    await connect_user(context, remote)
    await _dispatch(context, _text_event("/recent_files"))

    [message] = remote.last_reply_messages()
    assert message["type"] == "text"
    assert message["text"] == messages.TEXT_NO_FILES
    assert remote.count("drive.create_folder") == 0


async def test_recent_files_carousel(context, remote):
    await connect_user(context, remote)
    root_id = remote.add_folder("AppRoot")
    month_id = remote.add_folder("2025-06", root_id)
    for i in range(7):
        remote.add_file(f"photo-{i}.jpg", month_id)

    await _dispatch(context, _text_event("/recent_files"))

    [message] = remote.last_reply_messages()
    assert message["type"] == "flex"
    bubbles = message["contents"]["contents"]
    assert len(bubbles) == 5
    assert bubbles[0]["body"]["contents"][1]["text"] == "photo-6.jpg"


async def test_recent_files_auth_rejected_prompts_reconnect(context, remote):
    await connect_user(context, remote)
    remote.drive_error = (401, "authError")

    await _dispatch(context, _text_event("/recent_files"))

    [message] = remote.last_reply_messages()
    assert message["text"] == messages.TEXT_RECONNECT_NEEDED
    assert message["quickReply"]["items"][0]["action"]["text"] == "/reconnect"


async def test_recent_files_other_failure_is_generic(context, remote):
    await connect_user(context, remote)
    remote.drive_error = (403, "rateLimitExceeded")

    await _dispatch(context, _text_event("/recent_files"))

    assert remote.reply_texts() == [messages.TEXT_RECENT_FAILED]


async def test_disconnect_and_not_connected(context, remote):
    await connect_user(context, remote)

    await _dispatch(context, _text_event("/disconnect_drive"))
    await _dispatch(context, _text_event("/disconnect_drive"))

    assert remote.reply_texts() == [messages.TEXT_DISCONNECTED, messages.TEXT_NOT_CONNECTED]
    assert not await context.credential_store.exists(TEST_USER)


async def test_reconnect_replies_with_fresh_link(context, remote):
    await connect_user(context, remote)
    await _dispatch(context, _text_event("/reconnect"))

    [reply] = remote.reply_texts()
    assert reply.startswith("Please re-authorize this app")
    assert remote.count("revoke") == 1
    assert not await context.credential_store.exists(TEST_USER)


async def test_image_upload_replies_with_view_link(context, remote):
    await connect_user(context, remote)
    remote.media["m-1"] = (b"\xff\xd8jpeg-bytes", "image/jpeg")

    await _dispatch(context, _media_event({"type": "image", "id": "m-1"}))

    uploaded = [f for f in remote.files if f["mimeType"] != FOLDER_MIME_TYPE]
    assert [f["name"] for f in uploaded] == ["line-bot-upload-m-1.jpg"]
    assert uploaded[0]["content"] == b"\xff\xd8jpeg-bytes"
    [message] = remote.last_reply_messages()
    assert uploaded[0]["webViewLink"] in message["text"]
    assert {i["action"]["text"] for i in message["quickReply"]["items"]} == {"/recent_files", "/disconnect_drive"}


async def test_file_message_keeps_sender_filename(context, remote):
    await connect_user(context, remote)
    remote.media["m-2"] = (b"%PDF", "application/pdf")

    await _dispatch(context, _media_event({"type": "file", "id": "m-2", "fileName": "report.pdf", "fileSize": 4}))

    uploaded = [f for f in remote.files if f["mimeType"] != FOLDER_MIME_TYPE]
    assert uploaded[0]["name"] == "report.pdf"
    assert uploaded[0]["mimeType"] == "application/pdf"


async def test_media_without_credential_prompts_connect_without_remote_calls(context, remote):
    await _dispatch(context, _media_event({"type": "video", "id": "m-3"}))

    assert remote.reply_texts() == [messages.TEXT_CONNECT_FIRST]
    assert remote.count("line.content") == 0
    assert remote.drive_calls() == 0


async def test_media_upload_auth_rejected_prompts_reconnect(context, remote):
    await connect_user(context, remote)
    remote.upload_error = (401, "authError")

    await _dispatch(context, _media_event({"type": "audio", "id": "m-4"}))

    assert remote.reply_texts() == [messages.TEXT_RECONNECT_NEEDED]


async def test_media_upload_other_failure_is_generic(context, remote):
    await connect_user(context, remote)
    remote.upload_error = (500, "backendError")

    await _dispatch(context, _media_event({"type": "image", "id": "m-5"}))

    assert remote.reply_texts() == [messages.TEXT_UPLOAD_FAILED]


async def test_media_download_rejected_by_line_is_generic_failure(context, remote):
    await connect_user(context, remote)
    remote.content_status = 401

    await _dispatch(context, _media_event({"type": "image", "id": "m-9"}))

    assert remote.reply_texts() == [messages.TEXT_UPLOAD_FAILED]
    assert await context.credential_store.exists(TEST_USER), "A LINE failure must not touch the Drive grant."
    assert remote.count("drive.upload") == 0


async def test_sticker_reply(context, remote):
    await _dispatch(context, _media_event({
        "type": "sticker", "id": "s-1", "packageId": "446", "stickerId": "1988", "stickerResourceType": "STATIC",
    }))
    assert remote.reply_texts() == [messages.TEXT_STICKER.format(sticker_id="1988", resource_type="STATIC")]


async def test_follow_links_disconnected_menu_for_new_user(context, remote):
    await _dispatch(context, {"type": "follow", "replyToken": "t", "source": {"type": "user", "userId": "U-new"}})
    assert remote.rich_menu_links == [("U-new", "richmenu-disconnected")]
    assert remote.replies == []


async def test_follow_links_connected_menu_for_connected_user(context, remote):
    await connect_user(context, remote)
    remote.rich_menu_links.clear()
    await _dispatch(context, {"type": "follow", "replyToken": "t", "source": {"type": "user", "userId": TEST_USER}})
    assert remote.rich_menu_links == [(TEST_USER, "richmenu-connected")]


async def test_log_only_events_send_nothing(context, remote):
    events = [
        {"type": "unfollow", "source": {"type": "user", "userId": TEST_USER}},
        {"type": "join", "replyToken": "t", "source": {"type": "group", "groupId": "G1"}},
        {"type": "memberJoined", "replyToken": "t", "source": {"type": "group", "groupId": "G1"},
         "joined": {"members": [{"type": "user", "userId": "U2"}]}},
        {"type": "beacon", "replyToken": "t", "source": {"type": "user", "userId": TEST_USER},
         "beacon": {"hwid": "d41d8cd98f", "type": "enter"}},
        {"type": "videoPlayComplete", "replyToken": "t", "source": {"type": "user", "userId": TEST_USER}},
        _media_event({"type": "location", "id": "l-1", "latitude": 35.0, "longitude": 139.0}),
    ]
    await context.event_router.dispatch([parse_event(e) for e in events])
    assert remote.calls == []


async def test_group_message_without_user_id_cannot_connect(context, remote):
    raw = _text_event("/connect_drive")
    raw["source"] = {"type": "group", "groupId": "G1"}
    await _dispatch(context, raw)
    assert remote.reply_texts() == [messages.TEXT_UNIDENTIFIED_USER]


async def test_one_failing_event_does_not_stop_the_batch(context, remote, monkeypatch):
    async def broken_begin(user_id):
        raise RuntimeError("boom")

    async def broken_reply(reply_token, reply_messages):
        raise RuntimeError("reply exploded")

    monkeypatch.setattr(context.line_client, "reply", broken_reply)
    await context.event_router.dispatch([parse_event(_text_event("first"))])

    monkeypatch.undo()
    monkeypatch.setattr(context.authorization_flow, "begin_authorization", broken_begin)
    await context.event_router.dispatch([
        parse_event(_text_event("/connect_drive")),
        parse_event(_text_event("still here")),
    ])
    assert remote.reply_texts() == [messages.TEXT_CONNECT_FAILED, "still here"]
