from __future__ import annotations

TEMP_ID_PREFIX = "temp-"


def is_temp_id(value: str) -> bool:
    """True for client-generated placeholder ids of optimistic messages."""
    return value.startswith(TEMP_ID_PREFIX)
