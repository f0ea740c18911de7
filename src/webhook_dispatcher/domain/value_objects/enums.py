from __future__ import annotations

from enum import StrEnum


class NotificationStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class DeliveryOutcome(StrEnum):
    SUCCESS = "success"
    REDIRECT = "redirect"
    GONE = "gone"
    RETRYABLE = "retryable"
