from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from dm_chat.api.v1.schemas.user import UserSummaryResponse
from dm_chat.application.dto.message import ImageUpload
from dm_chat.client.api import ChatApiClient, ChatApiError
from dm_chat.client.models import ClientSession
from dm_chat.client.push import PushListener
from dm_chat.client.store import ChatStore
from dm_chat.domain.value_objects.enums import DeliveryStatus

BOB = UserSummaryResponse(id="u2", full_name="Bob", email="bob@example.com")


def _wire(sender: str = "u1", receiver: str = "u2", content: str | None = "hi", seconds: int = 0) -> dict:
    created = datetime(2024, 5, 1, tzinfo=timezone.utc) + timedelta(seconds=seconds)
    return {
        "_id": str(uuid.uuid4()),
        "content": content,
        "imageUrl": None,
        "senderId": sender,
        "receiverId": receiver,
        "createdAt": created.isoformat(),
    }


class FakeServer:
    """Routes the three REST calls to canned answers."""

    def __init__(self) -> None:
        self.users: list[dict] = [
            {"_id": "u2", "fullName": "Bob", "email": "bob@example.com", "profilePic": "", "online": True},
            {"_id": "u3", "fullName": "Carol", "email": "carol@example.com", "profilePic": "", "online": False},
        ]
        self.history: list[dict] = []
        self.send_status = 201
        self.send_error = "Image upload rejected"
        self.sends: list[httpx.Request] = []
        self.auth_headers: list[str | None] = []
        self.hold: asyncio.Event | None = None
        self.send_started = asyncio.Event()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("Authorization"))
        path = request.url.path
        if path == "/api/messages/users":
            return httpx.Response(200, json=self.users)
        if path.startswith("/api/messages/send/"):
            self.sends.append(request)
            self.send_started.set()
            if self.hold is not None:
                await self.hold.wait()
            if self.send_status >= 400:
                return httpx.Response(self.send_status, json={"error": self.send_error})
            return httpx.Response(201, json=_wire(receiver=path.rsplit("/", 1)[-1], seconds=60))
        if path == "/api/messages/u2":
            return httpx.Response(200, json=self.history)
        return httpx.Response(404, json={"error": "User not found"})


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest_asyncio.fixture
async def store(server):
    session = ClientSession(user_id="u1", token="tok")
    http = httpx.AsyncClient(transport=httpx.MockTransport(server.handler), base_url="http://test")
    api = ChatApiClient("http://test", session, http=http)
    chat = ChatStore(session, api, error_ttl=0.05)
    yield chat
    await chat.close()
    await http.aclose()


@pytest.mark.asyncio
async def test_load_users_sets_roster_and_presence(store, server):
    await store.load_users()

    assert [u.id for u in store.users] == ["u2", "u3"]
    assert store.online_user_ids == {"u2"}
    assert server.auth_headers == ["Bearer tok"]


@pytest.mark.asyncio
async def test_select_and_load_history(store, server):
    server.history = [_wire(sender="u2", receiver="u1"), _wire(seconds=1)]
    store.select_user(BOB)

    await store.load_messages()

    assert [m.id for m in store.messages] == [h["_id"] for h in server.history]
    assert all(m.status == DeliveryStatus.SENT for m in store.messages)


@pytest.mark.asyncio
async def test_send_confirms_optimistic_entry(store, server):
    store.select_user(BOB)

    confirmed = await store.send_message("hi")

    assert confirmed is not None
    assert [m.id for m in store.messages] == [confirmed.id]
    assert store.messages[0].status == DeliveryStatus.SENT
    assert len(server.sends) == 1
    assert store.error is None


@pytest.mark.asyncio
async def test_send_image_posts_multipart(store, server):
    store.select_user(BOB)
    image = ImageUpload(data=b"\x89PNGdata", content_type="image/png", filename="cat.png")

    await store.send_message(None, image)

    (request,) = server.sends
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'filename="cat.png"' in request.content


@pytest.mark.asyncio
async def test_failed_send_marks_entry_and_keeps_banner_clear(store, server):
    server.send_status = 502
    store.select_user(BOB)

    failed = await store.send_message("hi")

    assert failed is not None
    assert failed.status == DeliveryStatus.FAILED
    assert failed.is_optimistic
    assert [m.id for m in store.messages] == [failed.id]
    assert store.error is None


@pytest.mark.asyncio
async def test_retry_resends_failed_message(store, server):
    server.send_status = 502
    store.select_user(BOB)
    failed = await store.send_message("hi")
    server.send_status = 201

    confirmed = await store.retry(failed.id)

    assert confirmed is not None
    assert not confirmed.is_optimistic
    assert [m.id for m in store.messages] == [confirmed.id]
    assert len(server.sends) == 2


@pytest.mark.asyncio
async def test_cancelled_send_marks_entry_failed(store, server):
    server.hold = asyncio.Event()
    store.select_user(BOB)
    task = asyncio.create_task(store.send_message("hi"))
    await asyncio.wait_for(server.send_started.wait(), timeout=1)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    (entry,) = store.messages
    assert entry.status == DeliveryStatus.FAILED

    server.hold.set()
    confirmed = await store.retry(entry.id)
    assert confirmed is not None
    assert [m.id for m in store.messages] == [confirmed.id]


@pytest.mark.asyncio
async def test_retry_unknown_id_is_noop(store):
    store.select_user(BOB)
    assert await store.retry("temp-missing") is None


@pytest.mark.asyncio
async def test_send_without_selection_sets_banner(store):
    assert await store.send_message("hi") is None
    assert store.error == "No user selected"


@pytest.mark.asyncio
async def test_load_failure_sets_banner_that_expires(store, server):
    store.select_user(UserSummaryResponse(id="ghost", full_name="?", email="?"))

    await store.load_messages()

    assert store.error == "User not found"
    await asyncio.sleep(0.1)
    assert store.error is None


@pytest.mark.asyncio
async def test_push_new_message_for_open_conversation(store):
    store.select_user(BOB)
    payload = _wire(sender="u2", receiver="u1")

    await store.handle_push_event("newMessage", payload)
    await store.handle_push_event("newMessage", payload)
    await store.handle_push_event("newMessage", _wire(sender="u3", receiver="u1"))

    assert [m.id for m in store.messages] == [payload["_id"]]


@pytest.mark.asyncio
async def test_push_online_users_replaces_presence(store):
    await store.handle_push_event("getOnlineUsers", {"userIds": ["u2", "u3"]})
    assert store.online_user_ids == {"u2", "u3"}


@pytest.mark.asyncio
async def test_api_error_carries_error_text(server):
    session = ClientSession(user_id="u1", token="tok")
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(server.handler), base_url="http://test",
    ) as http:
        api = ChatApiClient("http://test", session, http=http)
        with pytest.raises(ChatApiError) as exc_info:
            await api.get_messages("ghost")

    assert exc_info.value.status_code == 404
    assert exc_info.value.error == "User not found"


@pytest.mark.asyncio
async def test_push_listener_dispatches_events_and_skips_heartbeats(store):
    listener = PushListener("ws://test/ws", ClientSession(user_id="u1", token="a b"))
    store.select_user(BOB)
    payload = _wire(sender="u2", receiver="u1")

    await listener._dispatch('{"type": "ping", "data": {}}', store.handle_push_event)
    await listener._dispatch("garbage", store.handle_push_event)
    await listener._dispatch(
        json.dumps({"type": "newMessage", "data": payload}), store.handle_push_event,
    )

    assert listener._url == "ws://test/ws?token=a+b"
    assert not listener.running
    assert [m.id for m in store.messages] == [payload["_id"]]
