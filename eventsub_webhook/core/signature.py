"""HMAC signature verification and freshness check for EventSub callbacks.

See: https://dev.twitch.tv/docs/eventsub/handling-webhook-events/#verifying-the-event-message
"""

import hashlib
import hmac
from datetime import UTC, datetime, timedelta

from eventsub_webhook.timeutil import parse_timestamp

SIGNATURE_PREFIX = "sha256="
MAX_MESSAGE_AGE = timedelta(minutes=10)


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign(secret: str, message_id: str, timestamp: str, body: str | bytes) -> str:
    """Return the ``sha256=<hex>`` signature for a callback message."""
    message = _as_bytes(message_id) + _as_bytes(timestamp) + _as_bytes(body)
    digest = hmac.new(_as_bytes(secret), message, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(
    secret: str,
    message_id: str,
    timestamp: str,
    body: str | bytes,
    signature: str | None,
) -> bool:
    """Recompute the signature and compare it in constant time."""
    if not signature:
        return False
    expected = sign(secret, message_id, timestamp, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def is_message_too_old(
    timestamp: str,
    max_age: timedelta = MAX_MESSAGE_AGE,
    now: datetime | None = None,
) -> bool:
    """Check whether a message timestamp is older than *max_age*.

    Unparseable timestamps are treated as fresh.
    """
    sent_at = parse_timestamp(timestamp)
    if sent_at is None:
        return False
    now = now or datetime.now(UTC)
    return now - sent_at > max_age
