"""Outbound webhook POSTs over httpx."""
from __future__ import annotations

import httpx

from webhook_dispatcher.application.exceptions import TransportError

# InvalidURL and StreamError sit outside httpx.HTTPError; both mean the
# request never got a response.
_REQUEST_FAILURES = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError)


class HttpxWebhookTransport:
    """Implements application.ports.transport.WebhookTransport."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def post(self, url: str, content_type: str, body: bytes) -> int:
        try:
            response = await self._client.post(
                url,
                content=body,
                headers={"Content-Type": content_type},
            )
        except _REQUEST_FAILURES as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        return response.status_code
