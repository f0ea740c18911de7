from __future__ import annotations

from webhook_dispatcher.domain.entities.subscription import Subscription
from webhook_dispatcher.infrastructure.db.models.subscription import SubscriptionModel


def model_to_entity(model: SubscriptionModel) -> Subscription:
    return Subscription(
        id=model.id,
        user_id=model.user_id,
        event=model.event,
        target_url=model.target_url,
    )


def entity_to_model(entity: Subscription) -> SubscriptionModel:
    return SubscriptionModel(
        id=entity.id or None,
        user_id=entity.user_id,
        event=entity.event,
        target_url=entity.target_url,
    )
