"""Drains the dispatcher's result stream into logs and Redis Pub/Sub."""
from __future__ import annotations

import asyncio
import logging

from webhook_dispatcher.application.ports.bus import EventPublisher
from webhook_dispatcher.domain.entities.notification import Notification
from webhook_dispatcher.domain.value_objects.enums import NotificationStatus
from webhook_dispatcher.infrastructure.bus.serializer import notification_to_dict
from webhook_dispatcher.services.result_stream import ResultStream

logger = logging.getLogger(__name__)

EVENT_DELIVERED = "webhook.delivered"
EVENT_FAILED = "webhook.failed"


class ResultForwarder:
    """Background reader that keeps the result stream drained.

    The dispatcher blocks on every terminal notification until someone reads
    it, so this task must run for as long as the dispatcher does. It ends on
    its own once the stream is closed.
    """

    def __init__(
        self,
        results: ResultStream,
        publisher: EventPublisher | None,
        channel: str,
    ) -> None:
        self._results = results
        self._publisher = publisher
        self._channel = channel
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._forward(), name="resthook-result-forwarder")
        logger.info("Result forwarder started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Result forwarder stopped")

    async def _forward(self) -> None:
        async for notification in self._results:
            self._log(notification)
            if self._publisher is None:
                continue
            payload = {
                "event_type": _event_type(notification),
                **notification_to_dict(notification),
            }
            try:
                await self._publisher.publish(self._channel, payload)
            except Exception:
                logger.exception(
                    "Failed to publish result for subscription %s",
                    notification.subscription.id,
                )

    @staticmethod
    def _log(notification: Notification) -> None:
        subscription = notification.subscription
        if notification.status == NotificationStatus.SUCCESS:
            logger.info(
                "Delivered %s to %s (subscription %s, retries=%d)",
                subscription.event, subscription.target_url,
                subscription.id, notification.retries,
            )
        else:
            logger.warning(
                "Failed to deliver %s to %s (subscription %s, retries=%d, last_status=%s)",
                subscription.event, subscription.target_url,
                subscription.id, notification.retries, notification.last_status_code,
            )


def _event_type(notification: Notification) -> str:
    if notification.status == NotificationStatus.SUCCESS:
        return EVENT_DELIVERED
    return EVENT_FAILED
