"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
import pytest

from dm_chat.application.exceptions import NotFoundError, UploadError, ValidationError
from dm_chat.config import settings
from dm_chat.domain.entities.message import (
    EMPTY_MESSAGE_ERROR,
    Message,
    has_body,
    next_created_at,
)
from dm_chat.domain.entities.user import User

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_user(user_id: str, full_name: str | None = None) -> User:
    return User(
        id=user_id,
        full_name=full_name or f"User {user_id}",
        email=f"{user_id}@example.com",
        profile_pic="",
        created_at=T0,
    )


def make_message(
    *,
    sender_id: str = "u1",
    receiver_id: str = "u2",
    content: str | None = "hello",
    image_url: str | None = None,
    created_at: datetime | None = None,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        image_url=image_url,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_token(user_id: str = "u1") -> str:
    return jwt.encode({"userId": user_id}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class FixedClock:
    """Clock that stays put unless advanced; forces timestamp collisions."""

    def __init__(self, now: datetime = T0) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


@dataclass
class FakeUserReader:
    _users: dict[str, User] = field(default_factory=dict)

    def add(self, *users: User) -> None:
        for user in users:
            self._users[user.id] = user

    async def exists(self, user_id: str) -> bool:
        return user_id in self._users

    async def list_excluding(self, user_id: str) -> list[User]:
        return [u for uid, u in self._users.items() if uid != user_id]


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_conversation(self, user_a: str, user_b: str) -> list[Message]:
        return sorted(
            (m for m in self._messages if m.belongs_to(user_a, user_b)),
            key=lambda m: (m.created_at, m.id),
        )


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    _users: FakeUserReader
    clock: FixedClock = field(default_factory=FixedClock)

    async def append(
        self,
        sender_id: str,
        receiver_id: str,
        content: str | None,
        image_url: str | None,
    ) -> Message:
        if not has_body(content, image_url):
            raise ValidationError(EMPTY_MESSAGE_ERROR)
        if not await self._users.exists(receiver_id):
            raise NotFoundError("Receiver not found")
        history = await self._reader.list_conversation(sender_id, receiver_id)
        last = history[-1].created_at if history else None
        message = Message(
            id=uuid.uuid4(),
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            image_url=image_url,
            created_at=next_created_at(self.clock.now(), last),
        )
        self._reader._messages.append(message)
        return message


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    users: FakeUserReader = field(default_factory=FakeUserReader)
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages, self.users)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


@dataclass
class FakeBlobStore:
    url_base: str = "https://res.example.com/chat_images"
    error: str | None = None
    delay: float = 0.0
    uploads: list[tuple[str, int]] = field(default_factory=list)

    async def upload(self, data: bytes, *, content_type: str, filename: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise UploadError(self.error)
        self.uploads.append((filename, len(data)))
        return f"{self.url_base}/{len(self.uploads)}-{filename}"


@dataclass
class FakeFanout:
    published: list[Message] = field(default_factory=list)
    fail: bool = False

    async def publish(self, message: Message) -> None:
        if self.fail:
            raise ConnectionError("bus down")
        self.published.append(message)


@pytest.fixture
def uow() -> FakeUoW:
    uow = FakeUoW()
    uow.users.add(make_user("u1", "Alice"), make_user("u2", "Bob"), make_user("u3", "Carol"))
    return uow


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def fanout() -> FakeFanout:
    return FakeFanout()
