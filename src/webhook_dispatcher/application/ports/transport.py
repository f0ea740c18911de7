from __future__ import annotations

from typing import Protocol

JSON_CONTENT_TYPE = "application/json"


class WebhookTransport(Protocol):
    async def post(self, url: str, content_type: str, body: bytes) -> int:
        """POST ``body`` and return the response status code.

        Raises TransportError when no response was received.
        """
        ...
