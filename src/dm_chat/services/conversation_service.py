from __future__ import annotations

from dm_chat.application.exceptions import NotFoundError
from dm_chat.application.uow import UnitOfWork
from dm_chat.domain.entities.message import Message
from dm_chat.domain.entities.user import User


async def list_other_users(excluding_id: str, uow: UnitOfWork) -> list[User]:
    """Sidebar roster: everybody except the caller."""
    return await uow.users.list_excluding(excluding_id)


async def get_conversation(
    self_id: str,
    other_id: str,
    uow: UnitOfWork,
) -> list[Message]:
    if not await uow.users.exists(other_id):
        raise NotFoundError("User not found")
    return await uow.messages.list_conversation(self_id, other_id)
