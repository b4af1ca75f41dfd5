"""EventSub webhook client.

Create a client, assign event handlers with :meth:`EventSubClient.on`, mount
:attr:`EventSubClient.router` (or call :meth:`EventSubClient.handle`) at the
path of the webhook URL, then start it::

    client = EventSubClient(get_settings())

    @client.on("stream.online")
    async def stream_online(event: dict) -> None:
        ...

    await client.start()
    await client.add_subscription(
        "stream.online", "1", Condition(broadcaster_user_id="215185844")
    )
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import timedelta
from typing import Any

import httpx
from fastapi import APIRouter

from eventsub_webhook.core.config import EventSubSettings
from eventsub_webhook.core.credentials import CredentialManager
from eventsub_webhook.core.dedup import HandledEventsChecker, create_handled_events_checker
from eventsub_webhook.core.dispatcher import (
    EventHandler,
    RevocationHandler,
    WebhookDispatcher,
    WebhookResponse,
)
from eventsub_webhook.core.rendezvous import VerificationRendezvous
from eventsub_webhook.core.subscriptions import get_channel_subscriptions
from eventsub_webhook.errors import DuplicateSubscriptionError
from eventsub_webhook.models.subscription import Condition, Subscription
from eventsub_webhook.routers.webhook_router import create_webhook_router
from eventsub_webhook.services.subscription_service import SubscriptionService
from eventsub_webhook.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


class EventSubClient:
    """Twitch EventSub client for the webhook transport."""

    def __init__(
        self,
        settings: EventSubSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        handled_events_checker: HandledEventsChecker | None = None,
        on_revocation: RevocationHandler | None = None,
    ):
        self.settings = settings

        self.api = TwitchAPIClient(
            settings.client_id,
            settings.client_secret,
            helix_url=settings.helix_url,
            oauth_url=settings.oauth_url,
            http_client=http_client,
            timeout=settings.http_timeout,
        )
        self.credentials = CredentialManager(self.api, settings.token_validate_interval)
        self.rendezvous = VerificationRendezvous()

        if handled_events_checker is None:
            handled_events_checker = create_handled_events_checker(
                settings.handled_events_maxsize, settings.handled_events_ttl
            )
        self.dispatcher = WebhookDispatcher(
            settings.webhook_secret,
            self.rendezvous,
            handled_events_checker=handled_events_checker,
            on_revocation=on_revocation,
            max_message_age=timedelta(seconds=settings.message_max_age),
        )
        self.subscriptions = SubscriptionService(
            self.api,
            self.credentials,
            self.rendezvous,
            webhook_url=settings.webhook_url,
            webhook_secret=settings.webhook_secret,
            verification_timeout=settings.verification_timeout,
        )
        self._router: APIRouter | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Generate the app access token and start background validation.

        Raises if the token cannot be generated.
        """
        if not self.credentials.is_initialized:
            await self.credentials.initialize()
        self.credentials.start_validation_loop()

    async def close(self) -> None:
        """Stop background validation and close the HTTP client."""
        await self.credentials.stop()
        await self.api.close()

    async def __aenter__(self) -> EventSubClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def webhook_secret(self) -> str:
        return self.settings.webhook_secret

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on(self, event_type: str, handler: EventHandler | None = None) -> Any:
        """Assign a handler to an event type, e.g. ``"stream.online"``.

        The handler receives the ``event`` object of the notification. Use
        directly, ``client.on("stream.online", handler)``, or as a decorator.
        See: https://dev.twitch.tv/docs/eventsub/eventsub-subscription-types/
        """
        if handler is not None:
            self.dispatcher.register(event_type, handler)
            return handler

        def decorator(func: Callable) -> Callable:
            self.dispatcher.register(event_type, func)
            return func

        return decorator

    @property
    def on_revocation(self) -> RevocationHandler | None:
        """Called with the revoked :class:`Subscription`; check its status for the reason."""
        return self.dispatcher.on_revocation

    @on_revocation.setter
    def on_revocation(self, handler: RevocationHandler | None) -> None:
        self.dispatcher.on_revocation = handler

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle(self, headers: Mapping[str, str], body: bytes) -> WebhookResponse:
        """Process one callback request, for servers other than FastAPI."""
        return await self.dispatcher.handle(headers, body)

    @property
    def router(self) -> APIRouter:
        """FastAPI router serving the callback at the webhook URL path."""
        if self._router is None:
            self._router = create_webhook_router(self.dispatcher, self.settings.webhook_path)
        return self._router

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def add_subscription(
        self, subscription_type: str, version: str, condition: Condition
    ) -> str:
        """Create a subscription; blocks until Twitch verifies the callback."""
        return await self.subscriptions.create(subscription_type, version, condition)

    async def remove_subscription(self, subscription_id: str) -> None:
        await self.subscriptions.remove(subscription_id)

    async def remove_subscription_by_type(
        self, subscription_type: str, condition: Condition
    ) -> None:
        """Remove ALL subscriptions matching the type and condition."""
        await self.subscriptions.remove_by_type(subscription_type, condition)

    async def get_subscriptions(self) -> list[Subscription]:
        """All subscriptions, including revoked ones."""
        return await self.subscriptions.list_subscriptions()

    async def get_subscriptions_by_type(self, subscription_type: str) -> list[Subscription]:
        return await self.subscriptions.list_subscriptions(subscription_type=subscription_type)

    async def get_subscriptions_by_status(self, status: str) -> list[Subscription]:
        """Subscriptions with *status*, e.g. ``"enabled"``.

        See: https://dev.twitch.tv/docs/api/reference/#get-eventsub-subscriptions
        """
        return await self.subscriptions.list_subscriptions(status=status)

    async def subscribe_channel(self, broadcaster_user_id: str, bot_id: str) -> list[str]:
        """Create the standard subscriptions for a channel, skipping existing ones."""
        created: list[str] = []
        for spec in get_channel_subscriptions(broadcaster_user_id, bot_id):
            try:
                created.append(await self.add_subscription(spec.type, spec.version, spec.condition))
            except DuplicateSubscriptionError:
                logger.info(f"Subscription {spec.type} already exists for {broadcaster_user_id}")
        return created
