"""Errors raised by the control-plane client."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from eventsub_webhook.models.subscription import Condition, Subscription


class EventSubError(Exception):
    """Base class for all EventSub client errors."""


class UnauthorizedError(EventSubError):
    """Helix rejected the app access token (HTTP 401)."""

    def __init__(self, message: str = "Unauthorized, app access token rejected") -> None:
        super().__init__(message)


class DuplicateSubscriptionError(EventSubError):
    """A subscription with the same type and condition already exists (HTTP 409)."""

    def __init__(self, subscription_type: str, condition: Condition) -> None:
        self.type = subscription_type
        self.condition = condition
        super().__init__(f"Subscription already exists: type={subscription_type}")


class SubscriptionNotFoundError(EventSubError):
    """The subscription to delete does not exist (HTTP 404)."""

    def __init__(self, subscription_id: str = "") -> None:
        self.subscription_id = subscription_id
        super().__init__(f"Subscription not found: {subscription_id}")


class VerificationTimeoutError(EventSubError):
    """Twitch never confirmed the callback for a freshly created subscription.

    The subscription may still exist remotely in a pending state.
    """

    def __init__(self, subscription: Subscription) -> None:
        self.subscription = subscription
        super().__init__(f"Timed out waiting for verification of subscription {subscription.id}")


class UnhandledStatusError(EventSubError):
    """Helix answered with a status code the client does not expect."""

    def __init__(self, status: int, body: bytes | str = b"") -> None:
        self.status = status
        self.body = body
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        super().__init__(f"Unhandled status {status}: {text}")


class InternalError(EventSubError):
    """Serialization, parsing or transport failure."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(f"{message}: {cause}" if cause else message)
