from .subscription import Condition, Subscription, SubscriptionTransport, WebhookPayload

__all__ = [
    "Condition",
    "Subscription",
    "SubscriptionTransport",
    "WebhookPayload",
]
