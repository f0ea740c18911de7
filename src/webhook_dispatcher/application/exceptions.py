from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class SubscriptionLookupError(AppError):
    pass


class SerializationError(AppError):
    pass


class PermanentDeliveryError(AppError):
    """Callback answered with a redirect-class status; not retried."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Unable to notify: {status_code}")


class DispatcherClosedError(AppError):
    pass


class TransportError(AppError):
    """The POST never produced an HTTP response."""
