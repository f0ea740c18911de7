from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from webhook_dispatcher.domain.entities.subscription import Subscription
from webhook_dispatcher.infrastructure.db.mappers import subscription as mapper
from webhook_dispatcher.infrastructure.db.models.subscription import SubscriptionModel


class SubscriptionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, subscription_id: int) -> Subscription | None:
        result = await self._session.get(SubscriptionModel, subscription_id)
        return mapper.model_to_entity(result) if result else None

    async def get_by_owner_and_event(self, user_id: int, event: str) -> Subscription | None:
        stmt = select(SubscriptionModel).where(
            SubscriptionModel.user_id == user_id,
            SubscriptionModel.event == event,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def add(self, subscription: Subscription) -> Subscription:
        model = mapper.entity_to_model(subscription)
        self._session.add(model)
        await self._session.flush()
        subscription.id = model.id
        return subscription

    async def update(self, subscription: Subscription) -> Subscription:
        stmt = (
            update(SubscriptionModel)
            .where(SubscriptionModel.id == subscription.id)
            .values(
                user_id=subscription.user_id,
                event=subscription.event,
                target_url=subscription.target_url,
            )
        )
        await self._session.execute(stmt)
        return subscription

    async def delete(self, subscription_id: int) -> None:
        stmt = delete(SubscriptionModel).where(SubscriptionModel.id == subscription_id)
        await self._session.execute(stmt)
