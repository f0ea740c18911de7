"""Import all models so Base.metadata sees them."""
from webhook_dispatcher.infrastructure.db.models.subscription import SubscriptionModel

__all__ = [
    "SubscriptionModel",
]
