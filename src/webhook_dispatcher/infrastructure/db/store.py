from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webhook_dispatcher.domain.entities.subscription import Subscription
from webhook_dispatcher.infrastructure.db.repositories.subscription import SubscriptionRepo


class SqlAlchemySubscriptionStore:
    """SubscriptionStore backed by Postgres, one session per operation.

    The dispatcher outlives any single request, so it cannot hold on to a
    request-scoped session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, subscription: Subscription) -> Subscription:
        async with self._session_factory() as session:
            repo = SubscriptionRepo(session)
            if subscription.is_saved:
                await repo.update(subscription)
            else:
                await repo.add(subscription)
            await session.commit()
        return subscription

    async def find_by_id(self, subscription_id: int) -> Subscription | None:
        async with self._session_factory() as session:
            return await SubscriptionRepo(session).get_by_id(subscription_id)

    async def find_by_owner_and_event(self, user_id: int, event: str) -> Subscription | None:
        async with self._session_factory() as session:
            return await SubscriptionRepo(session).get_by_owner_and_event(user_id, event)

    async def delete_by_id(self, subscription_id: int) -> None:
        async with self._session_factory() as session:
            await SubscriptionRepo(session).delete(subscription_id)
            await session.commit()
