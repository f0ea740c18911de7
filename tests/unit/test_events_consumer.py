from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from webhook_dispatcher.application.exceptions import NotFoundError
from webhook_dispatcher.domain.value_objects.enums import NotificationStatus
from webhook_dispatcher.infrastructure.bus.redis_streams import (
    MalformedEntryError,
    NotifyEntry,
    WebhookStreamConsumer,
    parse_entry,
)
from webhook_dispatcher.services.resthook import Resthook
from webhook_dispatcher.workers.events_consumer import make_event_handler
from tests.conftest import (
    FAST_POLICY,
    FakeSubscriptionStore,
    ResultCollector,
    ScriptedTransport,
)


@dataclass
class FakeRedis:
    acked: list[str] = field(default_factory=list)

    async def xack(self, stream: str, group: str, *ids: str) -> int:
        self.acked.extend(ids)
        return len(ids)


@dataclass
class RecordingCallback:
    entries: list[NotifyEntry] = field(default_factory=list)
    error: Exception | None = None

    async def __call__(self, entry: NotifyEntry) -> None:
        self.entries.append(entry)
        if self.error is not None:
            raise self.error


def make_consumer(redis: FakeRedis, callback) -> WebhookStreamConsumer:
    return WebhookStreamConsumer(
        redis=redis,  # type: ignore[arg-type]
        stream="webhooks.events",
        group="webhook-dispatcher",
        consumer="consumer-test",
        callback=callback,
    )


def notify_fields(**overrides: Any) -> dict[str, Any]:
    fields = {
        "event_type": "webhook.notify",
        "user_id": "1",
        "event": "post_created",
        "payload": json.dumps({"id": 99}),
    }
    fields.update(overrides)
    return {k: v for k, v in fields.items() if v is not None}


# --- entry parsing -------------------------------------------------------


def test_parse_entry():
    entry = parse_entry(notify_fields())
    assert entry == NotifyEntry(user_id=1, event="post_created", payload={"id": 99})


def test_parse_entry_without_payload():
    assert parse_entry(notify_fields(payload=None)).payload is None
    assert parse_entry(notify_fields(payload="")).payload is None


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"user_id": None}, "missing user_id"),
        ({"user_id": "abc"}, "not an integer"),
        ({"event": None}, "missing event"),
        ({"event": ""}, "missing event"),
        ({"payload": "{not json"}, "not JSON"),
    ],
)
def test_parse_entry_rejects_malformed_fields(overrides, message):
    with pytest.raises(MalformedEntryError, match=message):
        parse_entry(notify_fields(**overrides))


# --- acknowledgement -----------------------------------------------------


@pytest.mark.asyncio
async def test_handled_entry_is_acked():
    redis, callback = FakeRedis(), RecordingCallback()
    consumer = make_consumer(redis, callback)

    acked = await consumer.handle_entry("1-0", notify_fields())

    assert acked is True
    assert redis.acked == ["1-0"]
    assert callback.entries == [NotifyEntry(1, "post_created", {"id": 99})]


@pytest.mark.asyncio
async def test_unknown_event_type_is_acked_and_skipped():
    redis, callback = FakeRedis(), RecordingCallback()
    consumer = make_consumer(redis, callback)

    acked = await consumer.handle_entry("1-0", notify_fields(event_type="user.updated"))

    assert acked is True
    assert redis.acked == ["1-0"]
    assert callback.entries == []


@pytest.mark.asyncio
async def test_entry_without_user_id_is_dropped(caplog):
    redis, callback = FakeRedis(), RecordingCallback()
    consumer = make_consumer(redis, callback)

    with caplog.at_level("WARNING"):
        acked = await consumer.handle_entry("2-0", notify_fields(user_id=None))

    assert acked is True
    assert redis.acked == ["2-0"]
    assert callback.entries == []
    assert "Dropping malformed entry 2-0" in caplog.text


@pytest.mark.asyncio
async def test_entry_with_non_json_payload_is_dropped():
    redis, callback = FakeRedis(), RecordingCallback()
    consumer = make_consumer(redis, callback)

    acked = await consumer.handle_entry("3-0", notify_fields(payload="<xml/>"))

    assert acked is True
    assert redis.acked == ["3-0"]
    assert callback.entries == []


@pytest.mark.asyncio
async def test_callback_error_leaves_entry_pending(caplog):
    redis = FakeRedis()
    callback = RecordingCallback(error=RuntimeError("db down"))
    consumer = make_consumer(redis, callback)

    with caplog.at_level("ERROR"):
        acked = await consumer.handle_entry("4-0", notify_fields())

    assert acked is False
    assert redis.acked == []
    assert len(callback.entries) == 1
    assert "entry 4-0 left pending" in caplog.text


# --- handler -------------------------------------------------------------


@pytest.mark.asyncio
async def test_notify_entry_is_dispatched(store):
    transport = ScriptedTransport([200])
    resthook = Resthook(store, transport, FAST_POLICY)
    collector = ResultCollector(resthook.results)
    redis = FakeRedis()
    consumer = make_consumer(redis, make_event_handler(resthook))

    await consumer.handle_entry("1-0", notify_fields())

    assert json.loads(transport.requests[0][2]) == {"id": 99}
    assert redis.acked == ["1-0"]
    await resthook.close()
    items = await collector.finish()
    assert [n.status for n in items] == [NotificationStatus.SUCCESS]


@pytest.mark.asyncio
async def test_missing_subscription_is_acknowledged():
    transport = ScriptedTransport()
    resthook = Resthook(FakeSubscriptionStore(), transport, FAST_POLICY)
    redis = FakeRedis()
    consumer = make_consumer(redis, make_event_handler(resthook))

    await consumer.handle_entry("1-0", notify_fields(user_id="7"))

    assert transport.requests == []
    assert redis.acked == ["1-0"]
    await resthook.close()


@pytest.mark.asyncio
async def test_redirect_response_is_acknowledged(store):
    resthook = Resthook(store, ScriptedTransport([301]), FAST_POLICY)
    collector = ResultCollector(resthook.results)
    redis = FakeRedis()
    consumer = make_consumer(redis, make_event_handler(resthook))

    await consumer.handle_entry("1-0", notify_fields())

    assert redis.acked == ["1-0"]
    await resthook.close()
    items = await collector.finish()
    assert [n.status for n in items] == [NotificationStatus.FAILED]


@pytest.mark.asyncio
async def test_gone_subscription_already_removed_is_acknowledged(store):
    store.delete_error = NotFoundError("Invalid subscription.")
    resthook = Resthook(store, ScriptedTransport([410]), FAST_POLICY)
    collector = ResultCollector(resthook.results)
    redis = FakeRedis()
    consumer = make_consumer(redis, make_event_handler(resthook))

    acked = await consumer.handle_entry("1-0", notify_fields())

    assert acked is True
    assert redis.acked == ["1-0"]
    await resthook.close()
    items = await collector.finish()
    assert [n.status for n in items] == [NotificationStatus.FAILED]


@pytest.mark.asyncio
async def test_closed_dispatcher_leaves_entry_pending(store):
    transport = ScriptedTransport([200])
    resthook = Resthook(store, transport, FAST_POLICY)
    await resthook.close()
    redis = FakeRedis()
    consumer = make_consumer(redis, make_event_handler(resthook))

    acked = await consumer.handle_entry("1-0", notify_fields())

    assert acked is False
    assert redis.acked == []
    assert transport.requests == []
