"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dm_chat.application.dto.principal import Principal
from dm_chat.application.ports.auth import TokenVerifier
from dm_chat.application.ports.blob_store import BlobStore
from dm_chat.application.ports.bus import MessageFanout
from dm_chat.config import settings
from dm_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from dm_chat.infrastructure.db.session import AsyncSessionLocal
from dm_chat.infrastructure.db.uow import SqlAlchemyUoW
from dm_chat.infrastructure.ws.manager import ConnectionRegistry

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _verifier


def extract_token(
    credentials: HTTPAuthorizationCredentials | None,
    cookies: dict[str, str],
) -> str | None:
    """Bearer header wins; otherwise the session cookie set by the auth service."""
    if credentials is not None:
        return credentials.credentials
    return cookies.get(settings.JWT_COOKIE_NAME)


async def get_current_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    token = extract_token(credentials, request.cookies)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    verifier = get_verifier()
    try:
        return await verifier.verify(token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_fanout(request: Request) -> MessageFanout:
    return request.app.state.fanout


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
FanoutDep = Annotated[MessageFanout, Depends(get_fanout)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
