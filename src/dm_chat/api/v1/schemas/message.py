from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dm_chat.domain.entities.message import Message


class MessageResponse(BaseModel):
    """Wire shape of a stored message, shared by REST responses and push events."""

    id: UUID = Field(alias="_id")
    content: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    sender_id: str = Field(alias="senderId")
    receiver_id: str = Field(alias="receiverId")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_entity(cls, message: Message) -> MessageResponse:
        return cls(
            id=message.id,
            content=message.content,
            image_url=message.image_url,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            created_at=message.created_at,
        )

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            content=self.content,
            image_url=self.image_url,
            created_at=self.created_at,
        )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ErrorResponse(BaseModel):
    error: str
