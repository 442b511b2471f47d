from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from dm_chat.api.deps import get_verifier
from dm_chat.application.dto.principal import Principal
from dm_chat.config import settings
from dm_chat.domain.value_objects.enums import PushEventType
from dm_chat.infrastructure.ws.manager import ConnectionRegistry, PushChannel
from dm_chat.infrastructure.ws.protocol import WsInbound, encode_event

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED_CLOSE_CODE = 4001
TRY_AGAIN_LATER_CLOSE_CODE = 1013


async def _authenticate(token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws")
async def ws_push(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    principal = await _authenticate(token or websocket.cookies.get(settings.JWT_COOKIE_NAME))
    if principal is None:
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason="Authentication failed")
        return

    registry: ConnectionRegistry = websocket.app.state.registry
    user_id = principal.principal_key
    await websocket.accept()

    channel = PushChannel(settings.WS_SEND_QUEUE_SIZE)
    await registry.register(user_id, channel)

    writer_task = asyncio.create_task(
        _write_loop(websocket, channel), name=f"ws-writer-{user_id}",
    )
    heartbeat_task = asyncio.create_task(
        _heartbeat(channel, settings.WS_HEARTBEAT_SECONDS), name=f"ws-heartbeat-{user_id}",
    )
    try:
        await _read_loop(websocket, channel)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", user_id)
    finally:
        heartbeat_task.cancel()
        writer_task.cancel()
        await registry.unregister(user_id, channel)
        channel.close()


async def _write_loop(ws: WebSocket, channel: PushChannel) -> None:
    """Single writer per socket: drains the channel queue in order."""
    try:
        while True:
            raw = await channel.next()
            if raw is None:
                break
            await ws.send_text(raw)
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.debug("WS send failed", exc_info=True)
        channel.close()
        return

    # Closed by the registry (slow consumer or shutdown).
    if ws.application_state == WebSocketState.CONNECTED:
        await ws.close(code=TRY_AGAIN_LATER_CLOSE_CODE, reason="Push channel closed")


async def _heartbeat(channel: PushChannel, interval: float) -> None:
    while not channel.closed:
        await asyncio.sleep(interval)
        if not channel.offer(encode_event(PushEventType.PING)):
            logger.debug("Heartbeat tick skipped, push queue full")


async def _read_loop(ws: WebSocket, channel: PushChannel) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            channel.offer(encode_event(PushEventType.ERROR, {"code": "invalid_payload"}))
            continue

        if msg.type == PushEventType.PING:
            channel.offer(encode_event(PushEventType.PONG))
        elif msg.type == PushEventType.PONG:
            continue
        else:
            channel.offer(
                encode_event(PushEventType.ERROR, {"code": "unknown_type", "type": msg.type})
            )
