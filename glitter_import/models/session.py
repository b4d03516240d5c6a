from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "Session",
]


@dataclass(frozen=True)
class Session:
    """Authenticated caller on whose behalf records are created.

    Every tag and project lookup or write is scoped to ``user_id``.
    """
    user_id: str | None
    token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.user_id.strip())
