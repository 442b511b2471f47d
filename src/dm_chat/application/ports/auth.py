from __future__ import annotations

from typing import Protocol

from dm_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    """Turns a session token (header, cookie or WS query) into a principal.

    Raises on an invalid, expired or anonymous token.
    """

    async def verify(self, token: str) -> Principal: ...
