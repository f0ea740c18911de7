from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Subscription:
    user_id: int
    event: str
    target_url: str
    id: int | None = None

    @property
    def is_saved(self) -> bool:
        return bool(self.id)
