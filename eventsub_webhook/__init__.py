"""Twitch EventSub over the webhook transport.

Create an :class:`EventSubClient`, assign event handlers with
:meth:`EventSubClient.on`, then serve its router at the webhook URL path.
"""

from .client import EventSubClient
from .core.config import EventSubSettings, get_settings
from .core.dedup import (
    BoundedHandledEventsChecker,
    HandledEventsChecker,
    InMemoryHandledEventsChecker,
)
from .errors import (
    DuplicateSubscriptionError,
    EventSubError,
    InternalError,
    SubscriptionNotFoundError,
    UnauthorizedError,
    UnhandledStatusError,
    VerificationTimeoutError,
)
from .models import Condition, Subscription

__all__ = [
    "EventSubClient",
    "EventSubSettings",
    "get_settings",
    # Models
    "Condition",
    "Subscription",
    # Deduplication
    "BoundedHandledEventsChecker",
    "HandledEventsChecker",
    "InMemoryHandledEventsChecker",
    # Errors
    "DuplicateSubscriptionError",
    "EventSubError",
    "InternalError",
    "SubscriptionNotFoundError",
    "UnauthorizedError",
    "UnhandledStatusError",
    "VerificationTimeoutError",
]
