from __future__ import annotations

from enum import StrEnum


class DeliveryStatus(StrEnum):
    """Client-side lifecycle of a message bubble. Never persisted."""

    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class PushEventType(StrEnum):
    NEW_MESSAGE = "newMessage"
    ONLINE_USERS = "getOnlineUsers"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"
