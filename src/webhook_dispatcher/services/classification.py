"""Map a delivery attempt's HTTP status (or its absence) to an outcome."""
from __future__ import annotations

from http import HTTPStatus

from webhook_dispatcher.domain.value_objects.enums import DeliveryOutcome


def classify(status_code: int | None) -> DeliveryOutcome:
    """Classify one delivery attempt.

    ``None`` means the transport failed before a response arrived.
    """
    if status_code is None:
        return DeliveryOutcome.RETRYABLE
    if status_code < HTTPStatus.MULTIPLE_CHOICES:
        return DeliveryOutcome.SUCCESS
    if status_code < HTTPStatus.BAD_REQUEST:
        return DeliveryOutcome.REDIRECT
    if status_code == HTTPStatus.GONE:
        return DeliveryOutcome.GONE
    return DeliveryOutcome.RETRYABLE
