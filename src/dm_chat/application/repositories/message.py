from __future__ import annotations

from typing import Protocol

from dm_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_conversation(self, user_a: str, user_b: str) -> list[Message]:
        """Messages between the two users in either direction, oldest first."""
        ...


class MessageWriter(Protocol):
    async def append(
        self,
        sender_id: str,
        receiver_id: str,
        content: str | None,
        image_url: str | None,
    ) -> Message:
        """Persist a new message and return it with its store-assigned id and timestamp.

        Raises ValidationError when both content and image_url are empty and
        NotFoundError when receiver_id is unknown.
        """
        ...
