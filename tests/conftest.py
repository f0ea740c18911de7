"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from webhook_dispatcher.application.exceptions import TransportError
from webhook_dispatcher.domain.entities.notification import Notification
from webhook_dispatcher.domain.entities.subscription import Subscription
from webhook_dispatcher.domain.value_objects.retry_policy import RetryPolicy
from webhook_dispatcher.services.result_stream import ResultStream

# one delay unit = 10ms keeps retry tests fast
FAST_POLICY = RetryPolicy(initial_delay=1, multiplier=1, max_retries=2, time_unit=0.01)


def make_subscription(
    *,
    subscription_id: int | None = 1,
    user_id: int = 1,
    event: str = "post_created",
    target_url: str = "http://subscriber.test/hooks/notify",
) -> Subscription:
    return Subscription(
        id=subscription_id,
        user_id=user_id,
        event=event,
        target_url=target_url,
    )


@dataclass
class FakeSubscriptionStore:
    _store: dict[int, Subscription] = field(default_factory=dict)
    lookup_error: Exception | None = None
    delete_error: Exception | None = None
    calls: list[tuple[str, Any]] = field(default_factory=list)
    _next_id: int = 1

    def add(self, subscription: Subscription) -> Subscription:
        assert subscription.id is not None
        self._store[subscription.id] = subscription
        self._next_id = max(self._next_id, subscription.id + 1)
        return subscription

    async def save(self, subscription: Subscription) -> Subscription:
        self.calls.append(("save", subscription.id))
        if not subscription.id:
            subscription.id = self._next_id
            self._next_id += 1
        self._store[subscription.id] = Subscription(
            id=subscription.id,
            user_id=subscription.user_id,
            event=subscription.event,
            target_url=subscription.target_url,
        )
        return subscription

    async def find_by_id(self, subscription_id: int) -> Subscription | None:
        self.calls.append(("find_by_id", subscription_id))
        return self._store.get(subscription_id)

    async def find_by_owner_and_event(self, user_id: int, event: str) -> Subscription | None:
        self.calls.append(("find_by_owner_and_event", (user_id, event)))
        if self.lookup_error is not None:
            raise self.lookup_error
        for s in self._store.values():
            if s.user_id == user_id and s.event == event:
                return s
        return None

    async def delete_by_id(self, subscription_id: int) -> None:
        self.calls.append(("delete_by_id", subscription_id))
        if self.delete_error is not None:
            raise self.delete_error
        self._store.pop(subscription_id, None)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


@dataclass
class ScriptedTransport:
    """Answers each POST with the next scripted status (or raises it).

    Once the script runs out every further POST gets ``default``.
    """

    script: list[int | Exception] = field(default_factory=list)
    default: int = 500
    requests: list[tuple[str, str, bytes]] = field(default_factory=list)
    gate: asyncio.Event | None = None
    gate_after: int = 0
    sent_at: list[float] = field(default_factory=list)

    async def post(self, url: str, content_type: str, body: bytes) -> int:
        self.requests.append((url, content_type, body))
        self.sent_at.append(asyncio.get_running_loop().time())
        if self.gate is not None and len(self.requests) > self.gate_after:
            await self.gate.wait()
        step = self.script.pop(0) if self.script else self.default
        if isinstance(step, Exception):
            raise step
        return step


def connection_refused() -> TransportError:
    return TransportError("ConnectError: connection refused")


class ResultCollector:
    """Keeps a ResultStream drained and hands out what it read."""

    def __init__(self, stream: ResultStream) -> None:
        self.items: list[Notification] = []
        self._queue: asyncio.Queue[Notification] = asyncio.Queue()
        self._task = asyncio.create_task(self._run(stream))

    async def _run(self, stream: ResultStream) -> None:
        async for notification in stream:
            self.items.append(notification)
            self._queue.put_nowait(notification)

    async def next(self, timeout: float = 2.0) -> Notification:
        return await asyncio.wait_for(self._queue.get(), timeout)

    async def finish(self, timeout: float = 2.0) -> list[Notification]:
        await asyncio.wait_for(self._task, timeout)
        return self.items


@pytest.fixture
def subscription() -> Subscription:
    return make_subscription()


@pytest.fixture
def store(subscription: Subscription) -> FakeSubscriptionStore:
    fake = FakeSubscriptionStore()
    fake.add(subscription)
    return fake
