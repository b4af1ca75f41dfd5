"""Shared fixtures: a fake Twitch backend behind httpx.MockTransport."""

import json
from collections import defaultdict, deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest
import pytest_asyncio

from eventsub_webhook.client import EventSubClient
from eventsub_webhook.core.config import EventSubSettings
from eventsub_webhook.core.signature import sign

WEBHOOK_SECRET = "this-is-a-webhook-secret"
WEBHOOK_URL = "https://example.com/eventsub"

TOKEN_PATH = "/oauth2/token"
VALIDATE_PATH = "/oauth2/validate"
SUBSCRIPTIONS_PATH = "/helix/eventsub/subscriptions"

Responder = httpx.Response | Callable[[httpx.Request], httpx.Response]


class FakeTwitch:
    """Records requests and replies with queued responses per (method, path)."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.tokens_issued = 0
        self._queues: dict[tuple[str, str], deque[Responder]] = defaultdict(deque)

    def queue(self, method: str, path: str, *responses: Responder) -> None:
        self._queues[(method, path)].extend(responses)

    def requests_to(self, method: str, path: str = SUBSCRIPTIONS_PATH) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        queue = self._queues.get(key)
        if queue:
            responder = queue.popleft()
            return responder(request) if callable(responder) else responder

        if key == ("POST", TOKEN_PATH):
            self.tokens_issued += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{self.tokens_issued}",
                    "expires_in": 5000000,
                    "token_type": "bearer",
                },
            )
        if key == ("GET", VALIDATE_PATH):
            return httpx.Response(200, json={"client_id": "cid", "expires_in": 5000000})
        return httpx.Response(404, json={"error": "Not Found"})


def subscription_dict(
    subscription_id: str,
    subscription_type: str = "stream.online",
    status: str = "enabled",
    condition: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": subscription_id,
        "status": status,
        "type": subscription_type,
        "version": "1",
        "cost": 1,
        "condition": condition if condition is not None else {"broadcaster_user_id": "1337"},
        "transport": {"method": "webhook", "callback": WEBHOOK_URL},
        "created_at": "2024-02-01T10:11:12.634234626Z",
    }


def signed_callback(
    message_type: str,
    payload: dict[str, Any],
    *,
    message_id: str = "msg-1",
    timestamp: str | None = None,
    secret: str = WEBHOOK_SECRET,
) -> tuple[dict[str, str], bytes]:
    """Headers and body of a callback as Twitch would sign it."""
    if timestamp is None:
        timestamp = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Twitch-Eventsub-Message-Id": message_id,
        "Twitch-Eventsub-Message-Timestamp": timestamp,
        "Twitch-Eventsub-Message-Signature": sign(secret, message_id, timestamp, body),
        "Twitch-Eventsub-Message-Type": message_type,
        "Content-Type": "application/json",
    }
    return headers, body


@pytest.fixture
def settings() -> EventSubSettings:
    return EventSubSettings(
        client_id="cid",
        client_secret="csecret",
        webhook_secret=WEBHOOK_SECRET,
        webhook_url=WEBHOOK_URL,
        verification_timeout=1.0,
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def fake_twitch() -> FakeTwitch:
    return FakeTwitch()


@pytest_asyncio.fixture
async def client(settings: EventSubSettings, fake_twitch: FakeTwitch):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_twitch))
    eventsub = EventSubClient(settings, http_client=http_client)
    await eventsub.start()
    yield eventsub
    await eventsub.close()
    await http_client.aclose()
