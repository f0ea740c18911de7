from __future__ import annotations

from typing import Protocol

from webhook_dispatcher.domain.entities.subscription import Subscription


class SubscriptionStore(Protocol):
    """CRUD over subscriptions.

    Implementations decide where and how subscriptions live, e.g. soft-delete
    to keep a history.
    """

    async def save(self, subscription: Subscription) -> Subscription:
        """Create the subscription if it has no id (populating it), else update it."""
        ...

    async def find_by_id(self, subscription_id: int) -> Subscription | None: ...

    async def find_by_owner_and_event(self, user_id: int, event: str) -> Subscription | None: ...

    async def delete_by_id(self, subscription_id: int) -> None: ...
