from __future__ import annotations

import asyncio
import logging

from dm_chat.application.dto.message import ImageUpload
from dm_chat.application.exceptions import NotFoundError, UploadError, ValidationError
from dm_chat.application.ports.blob_store import BlobStore
from dm_chat.application.ports.bus import MessageFanout
from dm_chat.application.uow import UnitOfWork
from dm_chat.config import settings
from dm_chat.domain.entities.message import EMPTY_MESSAGE_ERROR, Message, has_body

logger = logging.getLogger(__name__)


async def send_message(
    sender_id: str,
    receiver_id: str,
    content: str | None,
    image: ImageUpload | None,
    uow: UnitOfWork,
    blob_store: BlobStore,
    fanout: MessageFanout,
    *,
    upload_timeout: float | None = None,
) -> Message:
    """Store a new direct message and push it to the receiver's live channels.

    The image (if any) is uploaded before anything is validated or written, so
    a failed upload leaves no message behind. Nothing here is retried; the
    caller owns retry policy. An upload followed by a failing validation step
    leaves the image on the media host.
    """
    if upload_timeout is None:
        upload_timeout = settings.UPLOAD_TIMEOUT_SECONDS

    image_url: str | None = None
    if image is not None:
        image_url = await _upload_image(image, blob_store, upload_timeout)

    if not has_body(content, image_url):
        raise ValidationError(EMPTY_MESSAGE_ERROR)

    if not await uow.users.exists(receiver_id):
        raise NotFoundError("Receiver not found")

    if not await uow.users.exists(sender_id):
        raise NotFoundError("Sender not found")

    message = await uow.messages_w.append(sender_id, receiver_id, content, image_url)
    await uow.commit()
    logger.info(
        "Message %s stored: %s -> %s (image=%s)",
        message.id,
        sender_id,
        receiver_id,
        image_url is not None,
    )

    try:
        await fanout.publish(message)
    except Exception:
        # Delivery is best effort; the message is already durable.
        logger.exception("Fanout failed for message %s", message.id)

    return message


async def _upload_image(
    image: ImageUpload,
    blob_store: BlobStore,
    timeout: float,
) -> str:
    try:
        return await asyncio.wait_for(
            blob_store.upload(
                image.data,
                content_type=image.content_type,
                filename=image.filename,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        logger.warning("Image upload exceeded %.1fs", timeout)
        raise UploadError("Image upload timed out") from exc
