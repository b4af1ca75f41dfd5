from dataclasses import dataclass

from eventsub_webhook.models.subscription import Condition


@dataclass(frozen=True)
class SubscriptionSpec:
    """Type, version and condition of a subscription to create."""

    type: str
    version: str
    condition: Condition


def get_channel_subscriptions(broadcaster_user_id: str, bot_id: str) -> list[SubscriptionSpec]:
    """Generate standard EventSub subscriptions for a channel."""
    return [
        SubscriptionSpec(
            "channel.chat.message",
            "1",
            Condition(broadcaster_user_id=broadcaster_user_id, user_id=bot_id),
        ),
        SubscriptionSpec("stream.online", "1", Condition(broadcaster_user_id=broadcaster_user_id)),
        SubscriptionSpec("stream.offline", "1", Condition(broadcaster_user_id=broadcaster_user_id)),
        SubscriptionSpec(
            "channel.channel_points_custom_reward_redemption.add",
            "1",
            Condition(broadcaster_user_id=broadcaster_user_id),
        ),
        SubscriptionSpec(
            "channel.follow",
            "2",
            Condition(broadcaster_user_id=broadcaster_user_id, moderator_user_id=bot_id),
        ),
        SubscriptionSpec(
            "channel.subscribe", "1", Condition(broadcaster_user_id=broadcaster_user_id)
        ),
        SubscriptionSpec(
            "channel.raid", "1", Condition(to_broadcaster_user_id=broadcaster_user_id)
        ),
    ]
