from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ImageUpload:
    """Raw image attached to an outgoing message, before it reaches the media host."""

    data: bytes
    content_type: str
    filename: str = "image"
