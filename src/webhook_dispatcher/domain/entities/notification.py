from __future__ import annotations

from dataclasses import dataclass

from webhook_dispatcher.domain.entities.subscription import Subscription
from webhook_dispatcher.domain.value_objects.enums import NotificationStatus


class InvalidStatusTransition(Exception):
    pass


@dataclass(slots=True, eq=False)
class Notification:
    """One logical delivery of a payload to a subscription.

    Owned by the dispatch call or its retry task until it reaches a terminal
    status and is published; read-only afterwards.
    """

    subscription: Subscription
    data: bytes
    status: NotificationStatus = NotificationStatus.PENDING
    retries: int = 0
    last_status_code: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != NotificationStatus.PENDING

    def mark_success(self) -> None:
        self._transition(NotificationStatus.SUCCESS)

    def mark_failed(self) -> None:
        self._transition(NotificationStatus.FAILED)

    def _transition(self, status: NotificationStatus) -> None:
        if self.is_terminal:
            raise InvalidStatusTransition(
                f"notification already {self.status}, cannot become {status}"
            )
        self.status = status
