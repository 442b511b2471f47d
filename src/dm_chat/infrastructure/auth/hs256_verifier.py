from __future__ import annotations

import jwt

from dm_chat.application.dto.principal import Principal


class HS256Verifier:
    """Verify session JWTs signed with the auth service's shared secret.

    The user id is read from ``userId`` (as issued by the auth service) and
    falls back to the standard ``sub`` claim.
    """

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        user_id = payload.get("userId") or payload.get("sub")
        if not user_id:
            raise jwt.InvalidTokenError("Token carries no user id")
        return Principal(user_id=str(user_id))
