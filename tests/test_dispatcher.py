"""Tests for inbound callback verification and routing."""

import asyncio
import threading
from datetime import UTC, datetime, timedelta

import pytest

from conftest import WEBHOOK_SECRET, signed_callback, subscription_dict
from eventsub_webhook.core.dedup import InMemoryHandledEventsChecker
from eventsub_webhook.core.dispatcher import WebhookDispatcher
from eventsub_webhook.core.rendezvous import VerificationRendezvous
from eventsub_webhook.core.signature import sign
from eventsub_webhook.models.subscription import Subscription

EVENT = {"broadcaster_user_id": "1337", "broadcaster_user_login": "cool_user", "type": "live"}


def notification(**kwargs):
    payload = {"subscription": subscription_dict("sub-1"), "event": EVENT}
    return signed_callback("notification", payload, **kwargs)


def _ago(delta: timedelta) -> str:
    return (datetime.now(UTC) - delta).isoformat().replace("+00:00", "Z")


@pytest.fixture
def rendezvous() -> VerificationRendezvous:
    return VerificationRendezvous()


@pytest.fixture
def dispatcher(rendezvous) -> WebhookDispatcher:
    return WebhookDispatcher(WEBHOOK_SECRET, rendezvous)


class Recorder:
    def __init__(self) -> None:
        self.events: list[dict] = []
        self.received = asyncio.Event()

    async def handle(self, event: dict) -> None:
        self.events.append(event)
        self.received.set()


def _handler_and_recorder(dispatcher: WebhookDispatcher) -> Recorder:
    recorder = Recorder()
    dispatcher.register("stream.online", recorder.handle)
    return recorder


class TestSignatureAndFreshness:
    @pytest.mark.asyncio
    async def test_bad_signature_is_forbidden(self, dispatcher):
        recorder = _handler_and_recorder(dispatcher)
        headers, body = notification(secret="wrong-secret-value")

        response = await dispatcher.handle(headers, body)

        assert response.status_code == 403
        await asyncio.sleep(0.01)
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_stale_message_is_accepted_but_ignored(self, dispatcher):
        recorder = _handler_and_recorder(dispatcher)
        headers, body = notification(timestamp=_ago(timedelta(minutes=10, seconds=1)))

        response = await dispatcher.handle(headers, body)

        assert response.status_code == 204
        await asyncio.sleep(0.01)
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_message_just_under_max_age_is_forwarded(self, dispatcher):
        recorder = _handler_and_recorder(dispatcher)
        headers, body = notification(timestamp=_ago(timedelta(minutes=10, seconds=-1)))

        response = await dispatcher.handle(headers, body)

        assert response.status_code == 204
        await asyncio.wait_for(recorder.received.wait(), timeout=1.0)
        assert recorder.events == [EVENT]

    @pytest.mark.asyncio
    async def test_unparseable_timestamp_is_treated_as_fresh(self, dispatcher):
        recorder = _handler_and_recorder(dispatcher)
        headers, body = notification(timestamp="yesterday")

        await dispatcher.handle(headers, body)

        await asyncio.wait_for(recorder.received.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_invalid_json_is_server_error(self, dispatcher):
        headers, _ = notification(message_id="m")
        timestamp = headers["Twitch-Eventsub-Message-Timestamp"]
        headers["Twitch-Eventsub-Message-Signature"] = sign(
            WEBHOOK_SECRET, "m", timestamp, b"not json"
        )

        response = await dispatcher.handle(headers, b"not json")

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_lowercase_headers(self, dispatcher):
        headers, body = notification()
        lowered = {k.lower(): v for k, v in headers.items()}

        response = await dispatcher.handle(lowered, body)

        assert response.status_code == 204


class TestNotification:
    @pytest.mark.asyncio
    async def test_duplicate_message_is_delivered_once(self, dispatcher):
        recorder = _handler_and_recorder(dispatcher)
        headers, body = notification(message_id="dup")

        first = await dispatcher.handle(headers, body)
        second = await dispatcher.handle(headers, body)
        await dispatcher.drain()

        assert first.status_code == 204
        assert second.status_code == 204
        assert recorder.events == [EVENT]

    @pytest.mark.asyncio
    async def test_custom_checker_is_used(self, rendezvous):
        checker = InMemoryHandledEventsChecker()
        checker.mark_handled("seen")
        dispatcher = WebhookDispatcher(
            WEBHOOK_SECRET, rendezvous, handled_events_checker=checker
        )
        recorder = _handler_and_recorder(dispatcher)

        await dispatcher.handle(*notification(message_id="seen"))
        await dispatcher.handle(*notification(message_id="new"))
        await dispatcher.drain()

        assert len(recorder.events) == 1
        assert checker.is_handled("new")

    @pytest.mark.asyncio
    async def test_no_handler_still_acknowledges(self, dispatcher):
        response = await dispatcher.handle(*notification())
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_the_event_loop(self, dispatcher):
        threads: list[int] = []
        dispatcher.register("stream.online", lambda event: threads.append(threading.get_ident()))

        await dispatcher.handle(*notification())
        await dispatcher.drain()

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_callable_object_with_async_call_is_awaited(self, dispatcher):
        received: list[dict] = []

        class Handler:
            async def __call__(self, event: dict) -> None:
                received.append(event)

        dispatcher.register("stream.online", Handler())

        response = await dispatcher.handle(*notification())
        await dispatcher.drain()

        assert response.status_code == 204
        assert received == [EVENT]

    @pytest.mark.asyncio
    async def test_lambda_returning_coroutine_is_awaited(self, dispatcher):
        received: list[tuple[dict, str]] = []

        async def record(event: dict, tag: str) -> None:
            received.append((event, tag))

        dispatcher.register("stream.online", lambda event: record(event, "tagged"))

        await dispatcher.handle(*notification())
        await dispatcher.drain()

        assert received == [(EVENT, "tagged")]

    @pytest.mark.asyncio
    async def test_unregistered_handler_is_not_called(self, dispatcher):
        recorder = _handler_and_recorder(dispatcher)
        dispatcher.unregister("stream.online")

        response = await dispatcher.handle(*notification())
        await dispatcher.drain()

        assert response.status_code == 204
        assert dispatcher.get_handler("stream.online") is None
        assert recorder.events == []

    def test_unregister_unknown_type_is_noop(self, dispatcher):
        dispatcher.unregister("channel.raid")
        assert dispatcher.get_handler("channel.raid") is None

    @pytest.mark.asyncio
    async def test_slow_handler_does_not_block_response(self, dispatcher):
        release = asyncio.Event()

        async def slow(event: dict) -> None:
            await release.wait()

        dispatcher.register("stream.online", slow)

        response = await asyncio.wait_for(dispatcher.handle(*notification()), timeout=1.0)

        assert response.status_code == 204
        release.set()
        await dispatcher.drain()

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, dispatcher):
        async def broken(event: dict) -> None:
            raise RuntimeError("handler bug")

        dispatcher.register("stream.online", broken)

        response = await dispatcher.handle(*notification(message_id="a"))
        await dispatcher.drain()
        assert response.status_code == 204

        response = await dispatcher.handle(*notification(message_id="b"))
        assert response.status_code == 204


class TestVerification:
    @pytest.mark.asyncio
    async def test_echoes_challenge_and_publishes_id(self, dispatcher, rendezvous):
        waiter = asyncio.create_task(rendezvous.wait_for("sub-1", timeout=1.0))
        await asyncio.sleep(0)
        payload = {
            "challenge": "pogchamp-kappa-360noscope",
            "subscription": subscription_dict("sub-1"),
        }
        headers, body = signed_callback("webhook_callback_verification", payload)

        response = await dispatcher.handle(headers, body)

        assert response.status_code == 200
        assert response.body == "pogchamp-kappa-360noscope"
        assert await waiter == "sub-1"

    @pytest.mark.asyncio
    async def test_responds_without_any_waiter(self, dispatcher):
        payload = {"challenge": "abc", "subscription": subscription_dict("sub-1")}

        response = await asyncio.wait_for(
            dispatcher.handle(*signed_callback("webhook_callback_verification", payload)),
            timeout=1.0,
        )

        assert response.status_code == 200


class TestRevocation:
    @pytest.mark.asyncio
    async def test_revocation_callback_receives_subscription(self, dispatcher):
        revoked: list[Subscription] = []
        dispatcher.on_revocation = revoked.append
        payload = {"subscription": subscription_dict("sub-1", status="authorization_revoked")}

        response = await dispatcher.handle(*signed_callback("revocation", payload))

        assert response.status_code == 204
        assert [s.id for s in revoked] == ["sub-1"]
        assert revoked[0].status == "authorization_revoked"

    @pytest.mark.asyncio
    async def test_async_revocation_callback_is_awaited(self, dispatcher):
        revoked: list[str] = []

        async def on_revocation(subscription: Subscription) -> None:
            await asyncio.sleep(0)
            revoked.append(subscription.id)

        dispatcher.on_revocation = on_revocation

        await dispatcher.handle(
            *signed_callback("revocation", {"subscription": subscription_dict("x")})
        )

        assert revoked == ["x"]

    @pytest.mark.asyncio
    async def test_revocation_without_callback(self, dispatcher):
        response = await dispatcher.handle(
            *signed_callback("revocation", {"subscription": subscription_dict("x")})
        )
        assert response.status_code == 204


@pytest.mark.asyncio
async def test_unknown_message_type_is_acknowledged(dispatcher):
    response = await dispatcher.handle(
        *signed_callback("something_new", {"subscription": subscription_dict("x")})
    )
    assert response.status_code == 204
