"""Unbuffered fan-in channel of terminal notifications."""
from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

from webhook_dispatcher.domain.entities.notification import Notification

_CLOSED = object()


class ResultStreamClosed(Exception):
    pass


class ResultStream:
    """Rendezvous channel: ``publish`` returns once a consumer took the value.

    Nothing is buffered on behalf of a missing consumer. If nobody drains the
    stream every producer blocks, including the dispatch call that produced
    a first-attempt outcome, so an embedding application must keep a reader
    running for as long as it dispatches.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def publish(self, notification: Notification) -> bool:
        """Hand ``notification`` to a consumer.

        Returns False when the stream closed before anyone took it; the value
        is then dropped.
        """
        if self._closed.is_set():
            return False

        handoff: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((notification, handoff))
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({handoff, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
            if not handoff.done():
                handoff.cancel()
        return not handoff.cancelled()

    async def get(self) -> Notification:
        """Take the next notification; raises ResultStreamClosed once closed."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                # leave the marker for any other reader
                self._queue.put_nowait(_CLOSED)
                raise ResultStreamClosed
            notification, handoff = item
            if handoff.done():
                continue
            handoff.set_result(None)
            return notification

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[Notification]:
        return self

    async def __anext__(self) -> Notification:
        try:
            return await self.get()
        except ResultStreamClosed:
            raise StopAsyncIteration from None
