"""Redis Streams consumer for ``webhook.notify`` entries.

Entries are flat string maps: ``event_type``, ``user_id``, ``event`` and an
optional JSON-encoded ``payload``. Acknowledgement policy:

- entries of another type are acked and skipped;
- entries that can't be parsed are logged and acked;
- entries whose callback raises stay pending for inspection/XCLAIM.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

NOTIFY_EVENT_TYPE = "webhook.notify"


class MalformedEntryError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class NotifyEntry:
    user_id: int
    event: str
    payload: Any


def parse_entry(fields: dict[str, Any]) -> NotifyEntry:
    raw_user_id = fields.get("user_id")
    if raw_user_id is None:
        raise MalformedEntryError("missing user_id")
    try:
        user_id = int(raw_user_id)
    except (TypeError, ValueError):
        raise MalformedEntryError(f"user_id is not an integer: {raw_user_id!r}") from None

    event = fields.get("event")
    if not event:
        raise MalformedEntryError("missing event")

    raw_payload = fields.get("payload")
    if not raw_payload:
        return NotifyEntry(user_id=user_id, event=event, payload=None)
    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError as exc:
        raise MalformedEntryError(f"payload is not JSON: {exc.msg}") from exc
    return NotifyEntry(user_id=user_id, event=event, payload=payload)


OnNotifyCallback = Callable[[NotifyEntry], Coroutine[Any, Any, None]]


class WebhookStreamConsumer:
    """XREADGROUP-based consumer for a single stream + consumer group."""

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnNotifyCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._task: asyncio.Task[None] | None = None

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                self._stream, self._group, id="$", mkstream=True
            )
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("Consumer group %s already exists", self._group)
            else:
                raise

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._consume(), name="webhook-stream-consumer")
        logger.info("Stream consumer started: stream=%s group=%s", self._stream, self._group)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Stream consumer stopped")

    async def handle_entry(self, msg_id: str, fields: dict[str, Any]) -> bool:
        """Process one entry; returns True if it was acknowledged."""
        event_type = fields.get("event_type")
        if event_type != NOTIFY_EVENT_TYPE:
            logger.debug("Skipping %s entry %s", event_type, msg_id)
            await self._redis.xack(self._stream, self._group, msg_id)
            return True

        try:
            entry = parse_entry(fields)
        except MalformedEntryError as exc:
            logger.warning("Dropping malformed entry %s: %s", msg_id, exc)
            await self._redis.xack(self._stream, self._group, msg_id)
            return True

        try:
            await self._callback(entry)
        except Exception:
            logger.exception(
                "Error dispatching %s for user %d (entry %s left pending)",
                entry.event, entry.user_id, msg_id,
            )
            return False

        await self._redis.xack(self._stream, self._group, msg_id)
        return True

    async def _consume(self) -> None:
        while True:
            try:
                entries = await self._redis.xreadgroup(
                    groupname=self._group,
                    consumername=self._consumer,
                    streams={self._stream: ">"},
                    count=self._batch_size,
                    block=self._block_ms,
                )
                if not entries:
                    continue
                for _stream_name, messages in entries:
                    for msg_id, fields in messages:
                        await self.handle_entry(msg_id, fields)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Stream consumer error, retrying in 5s")
                await asyncio.sleep(5)
