from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from dm_chat.api.v1.schemas.message import MessageResponse
from dm_chat.domain.value_objects.enums import DeliveryStatus
from dm_chat.domain.value_objects.ids import is_temp_id


@dataclass(frozen=True, slots=True)
class ClientSession:
    """Identity of the signed-in user, handed to the client components explicitly."""

    user_id: str
    token: str


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A message bubble as the client sees it.

    Server-confirmed entries carry the store id; optimistic ones carry a
    ``temp-`` id until they are confirmed or fail.
    """

    id: str
    sender_id: str
    receiver_id: str
    content: str | None
    image_url: str | None
    created_at: datetime
    status: DeliveryStatus = DeliveryStatus.SENT

    @property
    def is_optimistic(self) -> bool:
        return is_temp_id(self.id)

    def belongs_to(self, user_a: str, user_b: str) -> bool:
        return {self.sender_id, self.receiver_id} == {user_a, user_b}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ChatMessage:
        wire = MessageResponse.model_validate(payload)
        return cls(
            id=str(wire.id),
            sender_id=wire.sender_id,
            receiver_id=wire.receiver_id,
            content=wire.content,
            image_url=wire.image_url,
            created_at=wire.created_at,
        )
