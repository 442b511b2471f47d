from __future__ import annotations

from typing import Protocol

from dm_chat.domain.entities.message import Message


class MessageFanout(Protocol):
    """Hands a freshly stored message to the real-time delivery layer."""

    async def publish(self, message: Message) -> None: ...
