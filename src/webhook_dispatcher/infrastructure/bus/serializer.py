from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from webhook_dispatcher.domain.entities.notification import Notification


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def encode_payload(payload: Any) -> bytes:
    """JSON-encode a webhook payload; raises TypeError/ValueError if it can't."""
    return json.dumps(payload, cls=_Encoder, allow_nan=False).encode()


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    subscription = notification.subscription
    return {
        "subscription_id": subscription.id,
        "user_id": subscription.user_id,
        "event": subscription.event,
        "target_url": subscription.target_url,
        "status": notification.status.value,
        "retries": notification.retries,
        "last_status_code": notification.last_status_code,
    }
