from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from the session JWT."""

    user_id: str

    @property
    def principal_key(self) -> str:
        """Key for the push channel registry."""
        return self.user_id
