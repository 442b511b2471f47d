from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dm_chat.domain.entities.user import User
from dm_chat.infrastructure.db.errors import store_errors
from dm_chat.infrastructure.db.mappers import user as mapper
from dm_chat.infrastructure.db.models.user import UserModel


class UserReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def exists(self, user_id: str) -> bool:
        stmt = select(UserModel.id).where(UserModel.id == user_id).limit(1)
        with store_errors("user_exists"):
            result = await self._session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def list_excluding(self, user_id: str) -> list[User]:
        stmt = (
            select(UserModel)
            .where(UserModel.id != user_id)
            .order_by(UserModel.full_name.asc())
        )
        with store_errors("list_users"):
            result = await self._session.execute(stmt)
            return [mapper.model_to_entity(m) for m in result.scalars().all()]


class UserWriterRepo:
    """Used by the dev seed script only; the auth service owns user records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, user: User) -> None:
        self._session.add(mapper.entity_to_model(user))
        await self._session.flush()
