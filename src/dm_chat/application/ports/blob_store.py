from __future__ import annotations

from typing import Protocol


class BlobStore(Protocol):
    """Opaque media host: accepts an image and returns a stable URL."""

    async def upload(
        self,
        data: bytes,
        *,
        content_type: str,
        filename: str,
    ) -> str:
        """Return the secure URL of the stored image or raise ``UploadError``."""
        ...
