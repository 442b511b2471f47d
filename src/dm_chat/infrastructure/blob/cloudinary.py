"""Cloudinary-backed media host (signed upload API over httpx)."""
from __future__ import annotations

import hashlib
import logging
import time
from typing import Any

import httpx

from dm_chat.application.exceptions import UploadError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """Cloudinary request signature: sha1 of sorted ``k=v`` pairs plus the secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode()).hexdigest()


class CloudinaryBlobStore:
    """Implements application.ports.blob_store.BlobStore."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        upload_url: str,
        api_key: str,
        api_secret: str,
        folder: str,
        max_bytes: int,
    ) -> None:
        self._client = client
        self._upload_url = upload_url
        self._api_key = api_key
        self._api_secret = api_secret
        self._folder = folder
        self._max_bytes = max_bytes

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._api_secret)

    async def upload(
        self,
        data: bytes,
        *,
        content_type: str,
        filename: str,
    ) -> str:
        """Upload an image and return its ``secure_url``.

        Raises:
            UploadError: the image breaks policy (type/size), the host rejected
                it, answered with garbage, or could not be reached.
        """
        self._check_policy(data, content_type)

        params = {"folder": self._folder, "timestamp": int(time.time())}
        form = {
            **{key: str(value) for key, value in params.items()},
            "api_key": self._api_key,
            "signature": sign_params(params, self._api_secret),
        }
        try:
            response = await self._client.post(
                self._upload_url,
                data=form,
                files={"file": (filename, data, content_type)},
            )
        except httpx.TimeoutException as exc:
            logger.warning("Image upload timed out: %s", exc)
            raise UploadError("Image upload timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Image host unreachable: %s", exc)
            raise UploadError("Image host unreachable") from exc

        if response.status_code >= 400:
            logger.warning(
                "Image host rejected upload: %s %s",
                response.status_code,
                response.text[:200],
            )
            raise UploadError("Image upload rejected")

        try:
            secure_url = response.json()["secure_url"]
        except (ValueError, KeyError) as exc:
            raise UploadError("Image host returned an invalid response") from exc
        logger.debug("Uploaded %s (%d bytes) to %s", filename, len(data), secure_url)
        return secure_url

    def _check_policy(self, data: bytes, content_type: str) -> None:
        if not self.configured:
            raise UploadError("Image upload is not configured")
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise UploadError("Only JPEG, PNG, GIF and WebP images are allowed")
        if not data:
            raise UploadError("Image is empty")
        if len(data) > self._max_bytes:
            raise UploadError(
                f"Image exceeds the {self._max_bytes // (1024 * 1024)}MB limit"
            )
