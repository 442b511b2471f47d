"""WebSocket listener that feeds server push events to a callback."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine
from urllib.parse import urlencode

import websockets
from websockets.exceptions import WebSocketException

from dm_chat.client.models import ClientSession
from dm_chat.domain.value_objects.enums import PushEventType
from dm_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)

OnPushCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class PushListener:
    """Keeps one push connection open, reconnecting after a fixed delay.

    Events missed while disconnected are not replayed; callers refresh the
    conversation over HTTP to catch up.
    """

    def __init__(
        self,
        ws_url: str,
        session: ClientSession,
        *,
        reconnect_delay: float = 3.0,
    ) -> None:
        self._url = f"{ws_url}?{urlencode({'token': session.token})}"
        self._reconnect_delay = reconnect_delay
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, callback: OnPushCallback) -> None:
        self._task = asyncio.create_task(self._run(callback), name="push-listener")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self, callback: OnPushCallback) -> None:
        while True:
            try:
                async with websockets.connect(self._url) as ws:
                    logger.info("Push channel connected")
                    async for raw in ws:
                        await self._dispatch(raw, callback)
            except asyncio.CancelledError:
                raise
            except (OSError, WebSocketException) as exc:
                logger.warning(
                    "Push channel lost (%s), reconnecting in %.1fs",
                    exc,
                    self._reconnect_delay,
                )
            await asyncio.sleep(self._reconnect_delay)

    async def _dispatch(self, raw: str | bytes, callback: OnPushCallback) -> None:
        try:
            event = WsOutbound.model_validate_json(raw)
        except ValueError:
            logger.debug("Ignoring malformed push frame")
            return
        if event.type in (PushEventType.PING, PushEventType.PONG):
            return
        try:
            await callback(event.type, event.data)
        except Exception:
            logger.exception("Error handling push event %s", event.type)
