"""Consumer for webhook trigger events via Redis Streams.

Each stream entry carries ``event_type=webhook.notify`` plus ``user_id``,
``event`` and a JSON-encoded ``payload``; the entry is dispatched to the
matching subscriber. Entry parsing and acknowledgement live in
:mod:`webhook_dispatcher.infrastructure.bus.redis_streams`.
"""
from __future__ import annotations

import asyncio
import logging
import uuid

import httpx
import redis.asyncio as aioredis

from webhook_dispatcher.application.exceptions import (
    NotFoundError,
    PermanentDeliveryError,
    SubscriptionLookupError,
)
from webhook_dispatcher.config import settings
from webhook_dispatcher.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from webhook_dispatcher.infrastructure.bus.redis_streams import (
    NotifyEntry,
    OnNotifyCallback,
    WebhookStreamConsumer,
)
from webhook_dispatcher.infrastructure.db.session import AsyncSessionLocal
from webhook_dispatcher.infrastructure.db.store import SqlAlchemySubscriptionStore
from webhook_dispatcher.infrastructure.http.httpx_transport import HttpxWebhookTransport
from webhook_dispatcher.services.resthook import Resthook
from webhook_dispatcher.workers.result_forwarder import ResultForwarder

logger = logging.getLogger(__name__)


def make_event_handler(resthook: Resthook) -> OnNotifyCallback:
    """Outcomes that redelivery can't change are logged and swallowed.

    Anything else (DispatcherClosedError during shutdown, store or
    serialization failures) propagates so the entry stays pending.
    """

    async def _handle_event(entry: NotifyEntry) -> None:
        try:
            await resthook.dispatch(entry.user_id, entry.event, entry.payload)
        except SubscriptionLookupError as exc:
            # nobody to notify
            logger.info("Skipping %s for user %d: %s", entry.event, entry.user_id, exc.detail)
        except PermanentDeliveryError as exc:
            logger.warning(
                "Webhook %s for user %d rejected: %s", entry.event, entry.user_id, exc.detail,
            )
        except NotFoundError:
            # answered 410 but was already unsubscribed
            logger.info("Subscription for %s/%d already removed", entry.event, entry.user_id)

    return _handle_event


async def run_consumer() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    client = httpx.AsyncClient(timeout=settings.WEBHOOK_HTTP_TIMEOUT)
    resthook = Resthook(
        SqlAlchemySubscriptionStore(AsyncSessionLocal),
        HttpxWebhookTransport(client),
        settings.retry_policy,
    )
    forwarder = ResultForwarder(
        resthook.results,
        RedisPubSubPublisher(redis),
        settings.RESULTS_PUBSUB_CHANNEL,
    )
    await forwarder.start()

    consumer_name = f"consumer-{uuid.uuid4().hex[:8]}"
    consumer = WebhookStreamConsumer(
        redis=redis,
        stream=settings.WEBHOOK_EVENTS_STREAM,
        group=settings.WEBHOOK_EVENTS_GROUP,
        consumer=consumer_name,
        callback=make_event_handler(resthook),
    )
    await consumer.start()
    logger.info("Webhook events consumer started (%s)", consumer_name)

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await resthook.close()
        await forwarder.stop()
        await client.aclose()
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
