"""Chat state owner for a client UI: roster, open conversation, error banner."""
from __future__ import annotations

import asyncio
import base64
import logging
from types import TracebackType
from typing import Any, Self

import httpx

from dm_chat.api.v1.schemas.user import UserSummaryResponse
from dm_chat.application.dto.message import ImageUpload
from dm_chat.client.api import ChatApiClient, ChatApiError
from dm_chat.client.models import ChatMessage, ClientSession
from dm_chat.client.push import PushListener
from dm_chat.client.reconciliation import ConversationState
from dm_chat.domain.value_objects.enums import PushEventType

logger = logging.getLogger(__name__)

DEFAULT_ERROR_TTL = 5.0


def image_preview(image: ImageUpload) -> str:
    """Inline data URL shown in the optimistic bubble until the real URL arrives."""
    encoded = base64.b64encode(image.data).decode()
    return f"data:{image.content_type};base64,{encoded}"


class ChatStore:
    """Owns the chat-side client state.

    Construct it with an explicit ``ClientSession`` and API client, call
    ``start()`` (or use ``async with``) to begin receiving pushes, and
    ``close()`` to tear everything down.
    """

    def __init__(
        self,
        session: ClientSession,
        api: ChatApiClient,
        *,
        push: PushListener | None = None,
        error_ttl: float = DEFAULT_ERROR_TTL,
    ) -> None:
        self.session = session
        self._api = api
        self._push = push
        self._error_ttl = error_ttl

        self.users: list[UserSummaryResponse] = []
        self.online_user_ids: set[str] = set()
        self.selected_user: UserSummaryResponse | None = None
        self.conversation: ConversationState | None = None
        self.error: str | None = None

        self._error_timer: asyncio.TimerHandle | None = None
        self._outbox: dict[str, tuple[str | None, ImageUpload | None]] = {}

    async def start(self) -> None:
        if self._push is not None:
            await self._push.start(self.handle_push_event)

    async def close(self) -> None:
        if self._push is not None:
            await self._push.stop()
        self._clear_error()
        await self._api.aclose()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self.conversation.messages if self.conversation else ()

    async def load_users(self) -> None:
        try:
            self.users = await self._api.get_users()
        except (ChatApiError, httpx.HTTPError) as exc:
            logger.warning("Error fetching users: %s", exc)
            self._set_error(_describe(exc, "Failed to load users"))
            return
        self.online_user_ids = {u.id for u in self.users if u.online}

    def select_user(self, user: UserSummaryResponse | None) -> None:
        self.selected_user = user
        self.conversation = ConversationState(self.session.user_id, user.id) if user else None

    async def load_messages(self) -> None:
        conversation = self.conversation
        if conversation is None:
            return
        try:
            history = await self._api.get_messages(conversation.peer_id)
        except (ChatApiError, httpx.HTTPError) as exc:
            logger.warning("Error fetching messages: %s", exc)
            self._set_error(_describe(exc, "Failed to load messages"))
            return
        await conversation.replace_history(history)

    async def send_message(
        self,
        content: str | None,
        image: ImageUpload | None = None,
    ) -> ChatMessage | None:
        """Show the message at once, then reconcile it with the server's answer.

        Returns the confirmed message, or the ``failed`` entry when the send did
        not go through. Failures never raise and never touch the error banner.
        """
        conversation = self.conversation
        if conversation is None:
            self._set_error("No user selected")
            return None
        temp = await conversation.begin_send(
            content, image_preview(image) if image is not None else None,
        )
        self._outbox[temp.id] = (content, image)
        return await self._deliver(conversation, temp)

    async def retry(self, failed_id: str) -> ChatMessage | None:
        """Manually resend a failed message once more."""
        conversation = self.conversation
        if conversation is None or failed_id not in self._outbox:
            return None
        temp = await conversation.retry(failed_id)
        if temp is None:
            return None
        self._outbox[temp.id] = self._outbox.pop(failed_id)
        return await self._deliver(conversation, temp)

    async def handle_push_event(self, event_type: str, data: dict[str, Any]) -> None:
        if event_type == PushEventType.NEW_MESSAGE:
            message = ChatMessage.from_payload(data)
            if self.conversation is not None:
                await self.conversation.apply_push(message)
        elif event_type == PushEventType.ONLINE_USERS:
            self.online_user_ids = set(data.get("userIds", []))

    async def _deliver(
        self,
        conversation: ConversationState,
        temp: ChatMessage,
    ) -> ChatMessage | None:
        content, image = self._outbox[temp.id]
        try:
            confirmed = await self._api.send_message(conversation.peer_id, content, image)
        except asyncio.CancelledError:
            # Keep the entry retryable once the store is closed mid-send.
            await conversation.fail(temp.id)
            raise
        except Exception as exc:
            logger.warning("Send failed for %s: %s", temp.id, exc)
            await conversation.fail(temp.id)
            return conversation.get(temp.id)
        del self._outbox[temp.id]
        await conversation.confirm(temp.id, confirmed)
        return confirmed

    def _set_error(self, message: str) -> None:
        self._clear_error()
        self.error = message
        loop = asyncio.get_running_loop()
        self._error_timer = loop.call_later(self._error_ttl, self._expire_error)

    def _expire_error(self) -> None:
        self.error = None
        self._error_timer = None

    def _clear_error(self) -> None:
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None
        self.error = None


def _describe(exc: Exception, fallback: str) -> str:
    if isinstance(exc, ChatApiError):
        return exc.error
    return fallback
