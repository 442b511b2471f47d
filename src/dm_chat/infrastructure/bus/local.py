from __future__ import annotations

from dm_chat.domain.entities.message import Message
from dm_chat.infrastructure.ws.manager import ConnectionRegistry


class LocalMessageFanout:
    """Implements application.ports.bus.MessageFanout for a single process."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def publish(self, message: Message) -> None:
        await self._registry.publish(message)
