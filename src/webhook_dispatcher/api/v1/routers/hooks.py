from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, HTTPException, Response, status

from webhook_dispatcher.api.deps import ResthookDep
from webhook_dispatcher.api.v1.schemas.subscription import (
    SubscribeRequest,
    SubscriptionResponse,
)
from webhook_dispatcher.application.exceptions import ValidationError
from webhook_dispatcher.domain.entities.subscription import Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hooks", tags=["hooks"])


@router.post("/subscribe", response_model=SubscriptionResponse)
async def subscribe(
    body: SubscribeRequest,
    resthook: ResthookDep,
) -> SubscriptionResponse:
    if not _is_deliverable(body.target_url):
        raise ValidationError("Invalid subscribe data.")

    subscription = Subscription(
        user_id=body.user_id,
        event=body.event,
        target_url=body.target_url,
    )
    try:
        saved = await resthook.save(subscription)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to save subscription for user %d", body.user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating subscription.",
        ) from exc
    return SubscriptionResponse.model_validate(saved, from_attributes=True)


@router.delete("/unsubscribe/{subscription_id}")
async def unsubscribe(
    subscription_id: int,
    resthook: ResthookDep,
) -> Response:
    await resthook.delete_by_id(subscription_id)
    return Response(status_code=status.HTTP_200_OK)


def _is_deliverable(target_url: str) -> bool:
    """Parse the URL the same way the outbound client will."""
    try:
        url = httpx.URL(target_url)
    except httpx.InvalidURL:
        return False
    return url.scheme in ("http", "https") and bool(url.host)
