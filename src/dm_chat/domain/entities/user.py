from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class User:
    id: str
    full_name: str
    email: str
    profile_pic: str
    created_at: datetime
