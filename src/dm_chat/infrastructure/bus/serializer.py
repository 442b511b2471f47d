from __future__ import annotations

import json
from typing import Any

from dm_chat.api.v1.schemas.message import MessageResponse
from dm_chat.domain.entities.message import Message


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]


def message_to_payload(message: Message) -> dict[str, Any]:
    return MessageResponse.from_entity(message).to_payload()


def message_from_payload(payload: dict[str, Any]) -> Message:
    return MessageResponse.model_validate(payload).to_entity()
