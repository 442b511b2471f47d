"""Redis Pub/Sub: cross-process newMessage fanout.

Every process publishes stored messages to one channel and runs a subscriber
that hands them to its own ``ConnectionRegistry``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from dm_chat.domain.entities.message import Message
from dm_chat.domain.value_objects.enums import PushEventType
from dm_chat.infrastructure.bus.serializer import (
    deserialize_event,
    message_from_payload,
    message_to_payload,
    serialize_event,
)

logger = logging.getLogger(__name__)


class RedisMessageFanout:
    """Implements application.ports.bus.MessageFanout."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def publish(self, message: Message) -> None:
        raw = serialize_event(PushEventType.NEW_MESSAGE, message_to_payload(message))
        await self._redis.publish(self._channel, raw)


OnMessageCallback = Callable[[Message], Coroutine[Any, Any, Any]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches messages."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnMessageCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for item in pubsub.listen():
                if item["type"] != "message":
                    continue
                try:
                    await self._dispatch(item["data"])
                except Exception:
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()

    async def _dispatch(self, raw: str | bytes) -> None:
        event_type, data = deserialize_event(raw)
        if event_type != PushEventType.NEW_MESSAGE:
            logger.debug("Ignoring pubsub event %s", event_type)
            return
        await self._callback(message_from_payload(data))
