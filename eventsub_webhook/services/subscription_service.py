"""EventSub subscription management over Helix.

Every call goes through :meth:`CredentialManager.call_with_reauth`, so a
401 triggers one token regeneration and one retry.
"""

import logging
from functools import partial
from typing import Any

import httpx

from eventsub_webhook.core.credentials import CredentialManager
from eventsub_webhook.core.rendezvous import VerificationRendezvous
from eventsub_webhook.errors import (
    DuplicateSubscriptionError,
    InternalError,
    SubscriptionNotFoundError,
    UnauthorizedError,
    UnhandledStatusError,
    VerificationTimeoutError,
)
from eventsub_webhook.models.subscription import Condition, Subscription

from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_PATH = "eventsub/subscriptions"
DEFAULT_VERIFICATION_TIMEOUT = 10.0


def _parse_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise InternalError("Could not parse response body", e) from e
    if not isinstance(data, dict):
        raise InternalError("Response body is not a JSON object")
    return data


def _parse_subscriptions(data: dict[str, Any]) -> list[Subscription]:
    try:
        return [Subscription.model_validate(item) for item in data.get("data") or []]
    except ValueError as e:
        raise InternalError("Could not parse subscriptions", e) from e


class SubscriptionService:
    """Create, remove and list EventSub subscriptions."""

    def __init__(
        self,
        api: TwitchAPIClient,
        credentials: CredentialManager,
        rendezvous: VerificationRendezvous,
        *,
        webhook_url: str,
        webhook_secret: str,
        verification_timeout: float = DEFAULT_VERIFICATION_TIMEOUT,
    ):
        self.api = api
        self.credentials = credentials
        self.rendezvous = rendezvous
        self.webhook_url = webhook_url
        self.webhook_secret = webhook_secret
        self.verification_timeout = verification_timeout

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, subscription_type: str, version: str, condition: Condition) -> str:
        """Create a subscription and wait until Twitch verifies the callback.

        The webhook route must already be reachable, since Twitch sends the
        verification request before this call can return.
        """
        subscription = await self.credentials.call_with_reauth(
            lambda: self._request_create(subscription_type, version, condition)
        )

        try:
            await self.rendezvous.wait_for(subscription.id, self.verification_timeout)
        except TimeoutError:
            logger.warning(f"Verification timed out for subscription {subscription.id}")
            raise VerificationTimeoutError(subscription) from None

        logger.info(f"Subscription created: {subscription.id} ({subscription_type})")
        return subscription.id

    async def _request_create(
        self, subscription_type: str, version: str, condition: Condition
    ) -> Subscription:
        body = {
            "type": subscription_type,
            "version": version,
            "condition": condition.to_payload(),
            "transport": {
                "method": "webhook",
                "callback": self.webhook_url,
                "secret": self.webhook_secret,
            },
        }
        response = await self.api.helix_request(
            "POST", SUBSCRIPTIONS_PATH, self.credentials.token, json=body
        )

        if response.status_code == 409:
            raise DuplicateSubscriptionError(subscription_type, condition)
        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code != 202:
            raise UnhandledStatusError(response.status_code, response.content)

        subscriptions = _parse_subscriptions(_parse_json(response))
        # Helix returns an array holding the single created subscription
        if len(subscriptions) != 1:
            raise InternalError(
                f"Helix returned {len(subscriptions)} subscriptions for a create request"
            )
        return subscriptions[0]

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    async def remove(self, subscription_id: str) -> None:
        """Remove a subscription by ID."""
        await self.credentials.call_with_reauth(lambda: self._request_remove(subscription_id))
        logger.info(f"Subscription removed: {subscription_id}")

    async def _request_remove(self, subscription_id: str) -> None:
        response = await self.api.helix_request(
            "DELETE", SUBSCRIPTIONS_PATH, self.credentials.token, params={"id": subscription_id}
        )
        if response.status_code == 204:
            return
        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code == 404:
            raise SubscriptionNotFoundError(subscription_id)
        raise UnhandledStatusError(response.status_code, response.content)

    async def remove_by_type(self, subscription_type: str, condition: Condition) -> None:
        """Remove every subscription of *subscription_type* whose condition matches.

        Does nothing if none match. The first failed removal aborts the rest.
        """
        subscriptions = await self.list_subscriptions(subscription_type=subscription_type)
        for subscription in subscriptions:
            if subscription.condition == condition:
                logger.info(f"Removing subscription {subscription.id}")
                await self.remove(subscription.id)

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    async def list_subscriptions(
        self, subscription_type: str | None = None, status: str | None = None
    ) -> list[Subscription]:
        """Fetch all subscriptions, following pagination cursors.

        Filter by *subscription_type* or *status* (Helix accepts only one).
        """
        if subscription_type and status:
            raise ValueError("Filter by either subscription_type or status, not both")

        params: dict[str, str] = {}
        if subscription_type:
            params["type"] = subscription_type
        elif status:
            params["status"] = status

        subscriptions: list[Subscription] = []
        cursor = ""
        page = 1
        while True:
            logger.debug(f"Fetching page {page} of subscriptions")
            page_params = dict(params)
            if cursor:
                page_params["after"] = cursor

            data = await self.credentials.call_with_reauth(
                partial(self._request_page, page_params)
            )
            subscriptions.extend(_parse_subscriptions(data))

            cursor = (data.get("pagination") or {}).get("cursor") or ""
            if not cursor:
                break
            page += 1

        return subscriptions

    async def _request_page(self, params: dict[str, str]) -> dict[str, Any]:
        response = await self.api.helix_request(
            "GET", SUBSCRIPTIONS_PATH, self.credentials.token, params=params or None
        )
        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code != 200:
            raise UnhandledStatusError(response.status_code, response.content)
        return _parse_json(response)
