"""HTTP client for the direct-messages REST surface."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from dm_chat.api.v1.schemas.user import UserSummaryResponse
from dm_chat.application.dto.message import ImageUpload
from dm_chat.client.models import ChatMessage, ClientSession

logger = logging.getLogger(__name__)


class ChatApiError(Exception):
    """Non-2xx answer from the service, carrying its ``error`` text."""

    def __init__(self, status_code: int, error: str) -> None:
        self.status_code = status_code
        self.error = error
        super().__init__(f"{status_code}: {error}")


class ChatApiClient:
    def __init__(
        self,
        base_url: str,
        session: ClientSession,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = 20.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {session.token}"}

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def get_users(self) -> list[UserSummaryResponse]:
        data = await self._request("GET", "/api/messages/users")
        return [UserSummaryResponse.model_validate(item) for item in data]

    async def get_messages(self, user_id: str) -> list[ChatMessage]:
        data = await self._request("GET", f"/api/messages/{user_id}")
        return [ChatMessage.from_payload(item) for item in data]

    async def send_message(
        self,
        user_id: str,
        content: str | None,
        image: ImageUpload | None = None,
    ) -> ChatMessage:
        form = {"content": content} if content else {}
        files = None
        if image is not None:
            files = {"image": (image.filename, image.data, image.content_type)}
        data = await self._request(
            "POST", f"/api/messages/send/{user_id}", data=form, files=files,
        )
        return ChatMessage.from_payload(data)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._http.request(method, url, headers=self._headers, **kwargs)
        if response.status_code >= 400:
            raise ChatApiError(response.status_code, _error_text(response))
        return response.json()


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "Request failed"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or "Request failed")
    return "Request failed"
