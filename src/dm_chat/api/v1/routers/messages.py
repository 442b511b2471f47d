from __future__ import annotations

from fastapi import APIRouter, File, Form, UploadFile

from dm_chat.api.deps import (
    BlobStoreDep,
    CurrentPrincipal,
    FanoutDep,
    RegistryDep,
    UoWDep,
)
from dm_chat.api.v1.schemas.message import ErrorResponse, MessageResponse
from dm_chat.api.v1.schemas.user import UserSummaryResponse
from dm_chat.application.dto.message import ImageUpload
from dm_chat.services import conversation_service, message_service

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("/users", response_model=list[UserSummaryResponse])
async def list_users(
    principal: CurrentPrincipal,
    uow: UoWDep,
    registry: RegistryDep,
) -> list[UserSummaryResponse]:
    users = await conversation_service.list_other_users(principal.user_id, uow)
    return [
        UserSummaryResponse.from_entity(u, online=registry.is_online(u.id))
        for u in users
    ]


@router.get(
    "/{user_id}",
    response_model=list[MessageResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_messages(
    user_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await conversation_service.get_conversation(principal.user_id, user_id, uow)
    return [MessageResponse.from_entity(m) for m in messages]


@router.post(
    "/send/{user_id}",
    response_model=MessageResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def send_message(
    user_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
    blob_store: BlobStoreDep,
    fanout: FanoutDep,
    content: str | None = Form(None),
    image: UploadFile | None = File(None),
) -> MessageResponse:
    upload: ImageUpload | None = None
    if image is not None and image.filename:
        upload = ImageUpload(
            data=await image.read(),
            content_type=image.content_type or "application/octet-stream",
            filename=image.filename,
        )

    msg = await message_service.send_message(
        principal.user_id,
        user_id,
        content,
        upload,
        uow,
        blob_store,
        fanout,
    )
    return MessageResponse.from_entity(msg)
