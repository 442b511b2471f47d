"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from dm_chat.api.v1.schemas.message import MessageResponse
from dm_chat.domain.entities.message import Message
from dm_chat.domain.value_objects.enums import PushEventType


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # newMessage | getOnlineUsers | ping | pong | error
    data: dict[str, Any] = {}


def encode_event(event_type: PushEventType | str, data: dict[str, Any] | None = None) -> str:
    return WsOutbound(type=str(event_type), data=data or {}).model_dump_json()


def encode_new_message(message: Message) -> str:
    return encode_event(
        PushEventType.NEW_MESSAGE,
        MessageResponse.from_entity(message).to_payload(),
    )
