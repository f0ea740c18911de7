"""Webhook dispatcher: first delivery, classification and background retries."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from webhook_dispatcher.application.exceptions import (
    DispatcherClosedError,
    NotFoundError,
    PermanentDeliveryError,
    SerializationError,
    SubscriptionLookupError,
    TransportError,
)
from webhook_dispatcher.application.ports.transport import JSON_CONTENT_TYPE, WebhookTransport
from webhook_dispatcher.application.repositories.subscription import SubscriptionStore
from webhook_dispatcher.domain.entities.notification import Notification
from webhook_dispatcher.domain.entities.subscription import Subscription
from webhook_dispatcher.domain.value_objects.enums import DeliveryOutcome
from webhook_dispatcher.domain.value_objects.retry_policy import RetryPolicy
from webhook_dispatcher.infrastructure.bus.serializer import encode_payload
from webhook_dispatcher.services.classification import classify
from webhook_dispatcher.services.result_stream import ResultStream

logger = logging.getLogger(__name__)


class Resthook:
    """Delivers event payloads to subscribers and retries transient failures.

    Every notification reaches :attr:`results` exactly once in a terminal
    status, except retries still pending when :meth:`close` runs: those are
    abandoned without an emission.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        transport: WebhookTransport,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._store = store
        self._transport = transport
        self._policy = policy or RetryPolicy()
        self._results = ResultStream()
        self._shutdown = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def results(self) -> ResultStream:
        return self._results

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._shutdown.is_set()

    # --- subscriptions -----------------------------------------------------

    async def save(self, subscription: Subscription) -> Subscription:
        return await self._store.save(subscription)

    async def find_by_id(self, subscription_id: int) -> Subscription | None:
        return await self._store.find_by_id(subscription_id)

    async def delete_by_id(self, subscription_id: int) -> None:
        subscription = await self._store.find_by_id(subscription_id)
        if subscription is None or subscription.id is None:
            raise NotFoundError("Invalid subscription.")
        await self._store.delete_by_id(subscription.id)
        logger.info("Deleted subscription %d", subscription.id)

    # --- delivery ----------------------------------------------------------

    async def dispatch(self, user_id: int, event: str, payload: Any) -> None:
        """Notify the subscriber of ``event`` owned by ``user_id``.

        Retryable failures return immediately; their outcome shows up on
        :attr:`results` later.
        """
        if self.closed:
            raise DispatcherClosedError("Dispatcher is closed")

        try:
            subscription = await self._store.find_by_owner_and_event(user_id, event)
        except Exception as exc:
            raise SubscriptionLookupError(
                f"Lookup failed for user {user_id} event {event!r}: {exc}"
            ) from exc
        if subscription is None:
            raise SubscriptionLookupError(f"No subscription for user {user_id} event {event!r}")

        try:
            data = encode_payload(payload)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Unable to encode payload: {exc}") from exc

        notification = Notification(subscription=subscription, data=data)
        outcome = await self._attempt(notification)

        if outcome is DeliveryOutcome.SUCCESS:
            notification.mark_success()
            await self._publish(notification)
            return

        if outcome is DeliveryOutcome.REDIRECT:
            notification.mark_failed()
            await self._publish(notification)
            status_code = notification.last_status_code
            assert status_code is not None  # redirects are classified from a response
            raise PermanentDeliveryError(status_code)

        if outcome is DeliveryOutcome.GONE:
            notification.mark_failed()
            await self._publish(notification)
            logger.info("Subscription %s is gone, removing it", subscription.id)
            await self.delete_by_id(subscription.id)
            return

        self._spawn_retry(notification)

    async def _attempt(self, notification: Notification) -> DeliveryOutcome:
        url = notification.subscription.target_url
        try:
            status_code = await self._transport.post(url, JSON_CONTENT_TYPE, notification.data)
        except TransportError as exc:
            logger.warning("POST %s failed: %s", url, exc.detail)
            notification.last_status_code = None
            return classify(None)
        except Exception:
            logger.exception("Unexpected error posting to %s", url)
            notification.last_status_code = None
            return classify(None)

        notification.last_status_code = status_code
        outcome = classify(status_code)
        logger.debug("POST %s -> %d (%s)", url, status_code, outcome)
        return outcome

    async def _publish(self, notification: Notification) -> None:
        if not await self._results.publish(notification):
            logger.warning(
                "Result stream closed, dropped %s notification for subscription %s",
                notification.status, notification.subscription.id,
            )

    # --- retries -----------------------------------------------------------

    def _spawn_retry(self, notification: Notification) -> None:
        if self.closed:
            logger.info(
                "Dispatcher closing, not retrying subscription %s",
                notification.subscription.id,
            )
            return
        task = asyncio.create_task(
            self._retry(notification),
            name=f"resthook-retry-{notification.subscription.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._forget)

    def _forget(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Retry task %s crashed", task.get_name(), exc_info=task.exception(),
            )

    async def _retry(self, notification: Notification) -> None:
        # Only success ends the loop early: a 410 or 3xx on a retry is
        # handled like any other failure.
        interval = self._policy.initial_delay
        while True:
            if await self._wait_for_shutdown(self._policy.seconds(interval)):
                logger.info(
                    "Abandoned retries for subscription %s after %d retries",
                    notification.subscription.id, notification.retries,
                )
                return

            notification.retries += 1
            outcome = await self._attempt(notification)
            if outcome is DeliveryOutcome.SUCCESS:
                notification.mark_success()
                await self._publish(notification)
                return

            interval *= self._policy.multiplier
            if notification.retries >= self._policy.max_retries:
                logger.warning(
                    "Giving up on subscription %s after %d retries",
                    notification.subscription.id, notification.retries,
                )
                notification.mark_failed()
                await self._publish(notification)
                return

    async def _wait_for_shutdown(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout)
        except TimeoutError:
            return False
        return True

    # --- lifecycle ---------------------------------------------------------

    async def close(self) -> None:
        """Stop retries and wait for every background task to exit."""
        if self.closed:
            return
        self._shutdown.set()
        self._results.close()

        tasks = list(self._tasks)
        if tasks:
            logger.info("Waiting for %d retry task(s) to stop", len(tasks))
        # crashes are already logged by _forget
        await asyncio.gather(*tasks, return_exceptions=True)
