"""Client-held conversation state: optimistic sends reconciled with server truth.

Each locally sent message walks ``sending -> sent`` or ``sending -> failed``.
Confirmed entries are keyed by their server id, optimistic ones by their
temporary id, and a temporary id is retired for good once resolved. Every
mutation runs under one lock per conversation, so a push event and the HTTP
confirmation of the same message cannot interleave.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from dm_chat.client.models import ChatMessage
from dm_chat.domain.value_objects.enums import DeliveryStatus
from dm_chat.domain.value_objects.ids import TEMP_ID_PREFIX


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


class ConversationState:
    def __init__(self, self_id: str, peer_id: str) -> None:
        self.self_id = self_id
        self.peer_id = peer_id
        self._entries: list[ChatMessage] = []
        self._retired_temp_ids: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._entries)

    def get(self, message_id: str) -> ChatMessage | None:
        idx = self._index_of(message_id)
        return self._entries[idx] if idx is not None else None

    async def begin_send(
        self,
        content: str | None,
        image_preview: str | None = None,
    ) -> ChatMessage:
        """Append exactly one optimistic entry in ``sending`` state."""
        entry = self._optimistic(content, image_preview)
        async with self._lock:
            self._entries.append(entry)
        return entry

    async def confirm(self, temp_id: str, message: ChatMessage) -> bool:
        """Swap the optimistic entry for the stored message, keeping its position."""
        confirmed = replace(message, status=DeliveryStatus.SENT)
        async with self._lock:
            idx = self._pending_index(temp_id)
            if idx is None:
                return False
            self._retired_temp_ids.add(temp_id)
            # A push for the same message may already have landed.
            duplicate = self._index_of(confirmed.id)
            self._entries[idx] = confirmed
            if duplicate is not None:
                del self._entries[duplicate]
            return True

    async def fail(self, temp_id: str) -> bool:
        async with self._lock:
            idx = self._pending_index(temp_id)
            if idx is None:
                return False
            self._retired_temp_ids.add(temp_id)
            self._entries[idx] = replace(self._entries[idx], status=DeliveryStatus.FAILED)
            return True

    async def retry(self, failed_id: str) -> ChatMessage | None:
        """Replace a failed entry in place with a fresh optimistic one."""
        async with self._lock:
            idx = self._index_of(failed_id)
            if idx is None or self._entries[idx].status != DeliveryStatus.FAILED:
                return None
            failed = self._entries[idx]
            entry = self._optimistic(failed.content, failed.image_url)
            self._entries[idx] = entry
            return entry

    async def apply_push(self, message: ChatMessage) -> bool:
        """Insert a pushed message by ``created_at``; ignores foreign and known ids."""
        if not message.belongs_to(self.self_id, self.peer_id):
            return False
        async with self._lock:
            if self._index_of(message.id) is not None:
                return False
            self._insert_ordered(replace(message, status=DeliveryStatus.SENT))
            return True

    async def replace_history(self, messages: list[ChatMessage]) -> None:
        """Merge a server snapshot by id; unresolved and failed local entries stay at the end.

        Stored messages are never deleted, so a confirmed entry missing from the
        snapshot arrived after it was taken and is kept.
        """
        async with self._lock:
            merged = {
                m.id: replace(m, status=DeliveryStatus.SENT)
                for m in messages
                if m.belongs_to(self.self_id, self.peer_id)
            }
            local: list[ChatMessage] = []
            for entry in self._entries:
                if entry.is_optimistic:
                    local.append(entry)
                else:
                    merged.setdefault(entry.id, entry)
            history = sorted(merged.values(), key=lambda m: (m.created_at, m.id))
            self._entries = history + local

    def _optimistic(self, content: str | None, image_url: str | None) -> ChatMessage:
        return ChatMessage(
            id=new_temp_id(),
            sender_id=self.self_id,
            receiver_id=self.peer_id,
            content=content,
            image_url=image_url,
            created_at=datetime.now(timezone.utc),
            status=DeliveryStatus.SENDING,
        )

    def _pending_index(self, temp_id: str) -> int | None:
        if temp_id in self._retired_temp_ids:
            return None
        idx = self._index_of(temp_id)
        if idx is None or self._entries[idx].status != DeliveryStatus.SENDING:
            return None
        return idx

    def _index_of(self, message_id: str) -> int | None:
        for idx, entry in enumerate(self._entries):
            if entry.id == message_id:
                return idx
        return None

    def _insert_ordered(self, message: ChatMessage) -> None:
        pos = len(self._entries)
        while pos > 0 and self._entries[pos - 1].created_at > message.created_at:
            pos -= 1
        self._entries.insert(pos, message)
