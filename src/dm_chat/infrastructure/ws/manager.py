"""In-process registry of live push channels, keyed by user id."""
from __future__ import annotations

import asyncio
import logging

from dm_chat.domain.entities.message import Message
from dm_chat.domain.value_objects.enums import PushEventType
from dm_chat.infrastructure.ws.protocol import encode_event, encode_new_message

logger = logging.getLogger(__name__)


class PushChannel:
    """Bounded outbound queue for one live connection.

    The registry only ever calls ``offer`` (never blocks). A single writer task
    owned by the transport drains the queue with ``next``, so events reach the
    socket in the order they were offered.
    """

    def __init__(self, maxsize: int = 100) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, raw: str) -> bool:
        """Enqueue without waiting. False if the channel is closed or full."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(raw)
        except asyncio.QueueFull:
            return False
        return True

    async def next(self) -> str | None:
        """Next outbound frame, or None once the channel has been closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Pending frames are dropped; the sentinel wakes the writer.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)


class ConnectionRegistry:
    """Maps user id to the set of that user's open push channels.

    Every register/unregister/publish goes through ``_lock``. Delivery is
    at-most-once and best effort: users without channels simply miss the event.
    """

    def __init__(self, *, echo_to_sender: bool = False) -> None:
        self._channels: dict[str, set[PushChannel]] = {}
        self._lock = asyncio.Lock()
        self._echo_to_sender = echo_to_sender

    async def register(self, user_id: str, channel: PushChannel) -> None:
        async with self._lock:
            conns = self._channels.setdefault(user_id, set())
            came_online = not conns
            conns.add(channel)
            logger.debug("Channel registered: %s (channels=%d)", user_id, len(conns))
        if came_online:
            await self._broadcast_presence()

    async def unregister(self, user_id: str, channel: PushChannel) -> None:
        async with self._lock:
            went_offline = self._remove(user_id, channel)
        if went_offline:
            await self._broadcast_presence()

    async def publish(self, message: Message) -> int:
        """Push ``newMessage`` to the receiver's channels. Returns how many accepted it."""
        raw = encode_new_message(message)
        async with self._lock:
            # Keyed by channel: a channel never sees the same message twice.
            owners = dict.fromkeys(
                self._channels.get(message.receiver_id, ()), message.receiver_id
            )
            if self._echo_to_sender:
                for channel in self._channels.get(message.sender_id, ()):
                    owners.setdefault(channel, message.sender_id)
            delivered, went_offline = self._offer_all(owners, raw)
        if not owners:
            logger.debug("No live channel for %s, event dropped", message.receiver_id)
        if went_offline:
            await self._broadcast_presence()
        return delivered

    def is_online(self, user_id: str) -> bool:
        return bool(self._channels.get(user_id))

    def online_user_ids(self) -> list[str]:
        return sorted(uid for uid, chans in self._channels.items() if chans)

    def channel_count(self, user_id: str) -> int:
        return len(self._channels.get(user_id, ()))

    async def close_all(self) -> None:
        async with self._lock:
            for chans in self._channels.values():
                for ch in chans:
                    ch.close()
            self._channels.clear()

    async def _broadcast_presence(self) -> None:
        async with self._lock:
            raw = encode_event(
                PushEventType.ONLINE_USERS,
                {"userIds": self.online_user_ids()},
            )
            owners = {ch: uid for uid, chans in self._channels.items() for ch in chans}
            _, went_offline = self._offer_all(owners, raw)
        if went_offline:
            await self._broadcast_presence()

    def _offer_all(self, owners: dict[PushChannel, str], raw: str) -> tuple[int, bool]:
        # Caller holds the lock.
        delivered = 0
        went_offline = False
        for channel, user_id in owners.items():
            if channel.offer(raw):
                delivered += 1
                continue
            logger.warning("Dropping slow push channel for %s", user_id)
            channel.close()
            went_offline |= self._remove(user_id, channel)
        return delivered, went_offline

    def _remove(self, user_id: str, channel: PushChannel) -> bool:
        # Caller holds the lock. True when the user's last channel went away.
        conns = self._channels.get(user_id)
        if not conns or channel not in conns:
            return False
        conns.discard(channel)
        logger.debug("Channel unregistered: %s (channels=%d)", user_id, len(conns))
        if conns:
            return False
        del self._channels[user_id]
        return True
