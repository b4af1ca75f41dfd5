"""Inbound EventSub callback handling.

See: https://dev.twitch.tv/docs/eventsub/handling-webhook-events/
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from eventsub_webhook.core.dedup import HandledEventsChecker, InMemoryHandledEventsChecker
from eventsub_webhook.core.rendezvous import VerificationRendezvous
from eventsub_webhook.core.signature import MAX_MESSAGE_AGE, is_message_too_old, verify_signature
from eventsub_webhook.models.subscription import Subscription, WebhookPayload

logger = logging.getLogger(__name__)

# Request headers sent by Twitch
# See: https://dev.twitch.tv/docs/eventsub/handling-webhook-events/#list-of-request-headers
HEADER_MESSAGE_ID = "Twitch-Eventsub-Message-Id"
HEADER_MESSAGE_TIMESTAMP = "Twitch-Eventsub-Message-Timestamp"
HEADER_MESSAGE_SIGNATURE = "Twitch-Eventsub-Message-Signature"
HEADER_MESSAGE_TYPE = "Twitch-Eventsub-Message-Type"

MESSAGE_TYPE_NOTIFICATION = "notification"
MESSAGE_TYPE_VERIFICATION = "webhook_callback_verification"
MESSAGE_TYPE_REVOCATION = "revocation"

EventHandler = Callable[[dict[str, Any]], Awaitable[None] | None]
RevocationHandler = Callable[[Subscription], Awaitable[None] | None]


@dataclass
class WebhookResponse:
    """Framework-neutral HTTP response for a callback."""

    status_code: int
    body: str = ""
    media_type: str = "text/plain"


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        # Plain dicts are case-sensitive, HTTP headers are not
        lowered = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == lowered), "")
    return value


def _is_async_handler(handler: EventHandler) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


async def _run_handler(handler: EventHandler, event: dict[str, Any]) -> None:
    """Await async handlers on the loop; run anything else in a worker thread."""
    if _is_async_handler(handler):
        await handler(event)
        return
    result = await asyncio.to_thread(handler, event)
    # Plain callables may still hand back a coroutine (lambda, wrapper)
    if inspect.isawaitable(result):
        await result


class WebhookDispatcher:
    """Verifies inbound callbacks and routes them by message type."""

    def __init__(
        self,
        webhook_secret: str,
        rendezvous: VerificationRendezvous,
        *,
        handled_events_checker: HandledEventsChecker | None = None,
        on_revocation: RevocationHandler | None = None,
        max_message_age: timedelta = MAX_MESSAGE_AGE,
    ):
        self._webhook_secret = webhook_secret
        self.rendezvous = rendezvous
        self.handled_events_checker = handled_events_checker or InMemoryHandledEventsChecker()
        self.on_revocation = on_revocation
        self.max_message_age = max_message_age
        self._handlers: dict[str, EventHandler] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def register(self, event_type: str, handler: EventHandler) -> None:
        """Assign the handler for *event_type*, replacing any previous one."""
        if event_type in self._handlers:
            logger.warning(f"Replacing handler for {event_type}")
        self._handlers[event_type] = handler

    def unregister(self, event_type: str) -> None:
        """Drop the handler for *event_type*; later events are acknowledged only."""
        self._handlers.pop(event_type, None)

    def get_handler(self, event_type: str) -> EventHandler | None:
        return self._handlers.get(event_type)

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def handle(self, headers: Mapping[str, str], body: bytes) -> WebhookResponse:
        message_id = _header(headers, HEADER_MESSAGE_ID)
        timestamp = _header(headers, HEADER_MESSAGE_TIMESTAMP)
        signature = _header(headers, HEADER_MESSAGE_SIGNATURE)

        if not verify_signature(self._webhook_secret, message_id, timestamp, body, signature):
            logger.warning(f"Rejected callback with invalid signature: {message_id}")
            return WebhookResponse(403)
        logger.debug("Received valid signature")

        if is_message_too_old(timestamp, self.max_message_age):
            logger.info(f"Ignoring stale message {message_id} sent at {timestamp}")
            return WebhookResponse(204)

        try:
            payload = WebhookPayload.model_validate_json(body)
        except ValidationError as e:
            logger.error(f"Could not parse webhook payload: {e}")
            return WebhookResponse(500)

        message_type = _header(headers, HEADER_MESSAGE_TYPE)
        if message_type == MESSAGE_TYPE_NOTIFICATION:
            return self._handle_notification(message_id, payload)
        if message_type == MESSAGE_TYPE_VERIFICATION:
            return self._handle_verification(payload)
        if message_type == MESSAGE_TYPE_REVOCATION:
            return await self._handle_revocation(payload)

        logger.warning(f"Unknown message type '{message_type}' for message {message_id}")
        return WebhookResponse(204)

    def _handle_notification(self, message_id: str, payload: WebhookPayload) -> WebhookResponse:
        event_type = payload.subscription.type
        logger.debug(f"Received event for {event_type}")

        if self.handled_events_checker.is_handled(message_id):
            logger.info(f"Got request for handled event {message_id}, ignoring")
            return WebhookResponse(204)
        self.handled_events_checker.mark_handled(message_id)

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"No handler for event {event_type}")
        else:
            self._spawn(event_type, handler, payload.event or {})
        return WebhookResponse(204)

    def _handle_verification(self, payload: WebhookPayload) -> WebhookResponse:
        subscription_id = payload.subscription.id
        logger.info(f"Got challenge request for {subscription_id}")
        self.rendezvous.publish(subscription_id)
        return WebhookResponse(200, payload.challenge)

    async def _handle_revocation(self, payload: WebhookPayload) -> WebhookResponse:
        # Reason is in subscription.status, e.g. authorization_revoked
        subscription = payload.subscription
        logger.warning(f"Twitch revoked subscription {subscription.id}: {subscription.status}")
        if self.on_revocation is not None:
            result = self.on_revocation(subscription)
            if inspect.isawaitable(result):
                await result
        return WebhookResponse(204)

    # ------------------------------------------------------------------
    # Handler tasks
    # ------------------------------------------------------------------

    def _spawn(self, event_type: str, handler: EventHandler, event: dict[str, Any]) -> None:
        task = asyncio.create_task(_run_handler(handler, event), name=f"eventsub:{event_type}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Handler {task.get_name()} failed: {type(exc).__name__}: {exc}",
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait for in-flight handler tasks to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
