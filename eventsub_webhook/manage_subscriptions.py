"""Manage Twitch EventSub subscriptions"""

import asyncio

from eventsub_webhook.client import EventSubClient
from eventsub_webhook.core.config import get_settings
from eventsub_webhook.core.logging import setup_logging
from eventsub_webhook.errors import EventSubError, SubscriptionNotFoundError
from eventsub_webhook.models.subscription import Subscription


def print_subscriptions(subscriptions: list[Subscription]) -> None:
    print(f"\n=== Found {len(subscriptions)} Subscription(s) ===\n")
    for i, sub in enumerate(subscriptions, 1):
        print(f"{i}. {sub.type} v{sub.version} ({sub.id})")
        print(f"   Status: {sub.status}")
        print(f"   Condition: {sub.condition.to_payload()}")
        print(f"   Callback: {sub.transport.callback}")
        print()


async def delete_subscriptions(client: EventSubClient, subscriptions: list[Subscription]) -> None:
    """Delete the given subscriptions after confirmation"""
    if not subscriptions:
        print("No subscriptions to delete.")
        return

    confirm = input(
        f"\nAre you sure you want to delete {len(subscriptions)} subscription(s)? (yes/no): "
    )
    if confirm.lower() != "yes":
        print("Cancelled.")
        return

    deleted = 0
    for sub in subscriptions:
        try:
            await client.remove_subscription(sub.id)
            deleted += 1
            print(f"✓ Deleted subscription: {sub.id}")
        except SubscriptionNotFoundError:
            print(f"- Already gone: {sub.id}")
        except EventSubError as e:
            print(f"✗ Failed to delete subscription {sub.id}: {e}")

    print(f"\n✓ Deleted {deleted} subscription(s)")


async def main():
    settings = get_settings()
    setup_logging(settings.log_level)

    print("=== Twitch EventSub Subscription Manager ===\n")
    print("1. List all subscriptions")
    print("2. Delete all subscriptions")
    print("3. Delete subscriptions by status")
    print("4. Exit")

    choice = input("\nEnter your choice (1-4): ")
    if choice == "4":
        print("Exiting...")
        return
    if choice not in ("1", "2", "3"):
        print("Invalid choice")
        return

    async with EventSubClient(settings) as client:
        if choice == "1":
            print_subscriptions(await client.get_subscriptions())
        elif choice == "2":
            subscriptions = await client.get_subscriptions()
            print_subscriptions(subscriptions)
            await delete_subscriptions(client, subscriptions)
        else:
            status = input("Status (e.g. webhook_callback_verification_failed): ").strip()
            subscriptions = await client.get_subscriptions_by_status(status)
            print_subscriptions(subscriptions)
            await delete_subscriptions(client, subscriptions)


if __name__ == "__main__":
    asyncio.run(main())
