from __future__ import annotations

import uuid

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dm_chat.application.exceptions import NotFoundError, ValidationError
from dm_chat.application.ports.clock import Clock, SystemClock
from dm_chat.domain.entities.message import (
    EMPTY_MESSAGE_ERROR,
    Message,
    has_body,
    next_created_at,
)
from dm_chat.infrastructure.db.errors import store_errors
from dm_chat.infrastructure.db.mappers import message as mapper
from dm_chat.infrastructure.db.models.message import MessageModel
from dm_chat.infrastructure.db.models.user import UserModel


def _pair_filter(user_a: str, user_b: str):
    return or_(
        and_(MessageModel.sender_id == user_a, MessageModel.receiver_id == user_b),
        and_(MessageModel.sender_id == user_b, MessageModel.receiver_id == user_a),
    )


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_conversation(self, user_a: str, user_b: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(_pair_filter(user_a, user_b))
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        with store_errors("list_conversation"):
            result = await self._session.execute(stmt)
            return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    async def append(
        self,
        sender_id: str,
        receiver_id: str,
        content: str | None,
        image_url: str | None,
    ) -> Message:
        if not has_body(content, image_url):
            raise ValidationError(EMPTY_MESSAGE_ERROR)

        with store_errors("append"):
            receiver = await self._session.get(UserModel, receiver_id)
            if receiver is None:
                raise NotFoundError("Receiver not found")

            last_stmt = select(func.max(MessageModel.created_at)).where(
                _pair_filter(sender_id, receiver_id)
            )
            last = (await self._session.execute(last_stmt)).scalar_one_or_none()

            message = Message(
                id=uuid.uuid4(),
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                image_url=image_url,
                created_at=next_created_at(self._clock.now(), last),
            )
            self._session.add(mapper.entity_to_model(message))
            await self._session.flush()

        return message
