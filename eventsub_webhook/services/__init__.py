"""Services layer - Helix and OAuth access"""

from .subscription_service import SubscriptionService
from .twitch_api import TwitchAPIClient

__all__ = [
    "SubscriptionService",
    "TwitchAPIClient",
]
