from __future__ import annotations

from typing import Protocol

from dm_chat.domain.entities.user import User


class UserReader(Protocol):
    async def exists(self, user_id: str) -> bool: ...

    async def list_excluding(self, user_id: str) -> list[User]: ...
