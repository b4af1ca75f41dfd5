"""Core modules for the EventSub webhook client."""

from .config import EventSubSettings, get_settings
from .credentials import CredentialManager
from .dedup import (
    BoundedHandledEventsChecker,
    HandledEventsChecker,
    InMemoryHandledEventsChecker,
    create_handled_events_checker,
)
from .dispatcher import WebhookDispatcher, WebhookResponse
from .logging import setup_logging
from .rendezvous import VerificationRendezvous
from .signature import is_message_too_old, sign, verify_signature
from .subscriptions import SubscriptionSpec, get_channel_subscriptions

__all__ = [
    # Settings
    "EventSubSettings",
    "get_settings",
    "setup_logging",
    # Credentials
    "CredentialManager",
    # Callback verification
    "is_message_too_old",
    "sign",
    "verify_signature",
    # Deduplication
    "BoundedHandledEventsChecker",
    "HandledEventsChecker",
    "InMemoryHandledEventsChecker",
    "create_handled_events_checker",
    # Dispatch
    "VerificationRendezvous",
    "WebhookDispatcher",
    "WebhookResponse",
    # Channel subscriptions
    "SubscriptionSpec",
    "get_channel_subscriptions",
]
