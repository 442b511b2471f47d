from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

# Smallest step a timestamptz column can represent.
TIMESTAMP_RESOLUTION = timedelta(microseconds=1)

EMPTY_MESSAGE_ERROR = "Message content or image is required"


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    sender_id: str
    receiver_id: str
    content: str | None
    image_url: str | None
    created_at: datetime

    @property
    def participants(self) -> frozenset[str]:
        return frozenset((self.sender_id, self.receiver_id))

    def belongs_to(self, user_a: str, user_b: str) -> bool:
        return self.participants == frozenset((user_a, user_b))


def has_body(content: str | None, image_url: str | None) -> bool:
    """A message needs non-blank text or an image reference."""
    return bool(content and content.strip()) or bool(image_url)


def next_created_at(now: datetime, last: datetime | None) -> datetime:
    """Timestamp for a new message that never sorts before the pair's last one."""
    if last is None or now > last:
        return now
    return last + TIMESTAMP_RESOLUTION
