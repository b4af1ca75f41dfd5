"""Hand-off of callback verifications to pending subscription creations.

Creating a subscription returns 202 right away, but Twitch confirms the
callback URL on a separate inbound request. The creation call waits here
for the subscription ID it expects; the webhook dispatcher publishes IDs
as verification requests come in.
"""

import asyncio
import logging

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)


class VerificationRendezvous:
    """Registry of pending waiters keyed by subscription ID.

    Confirmations nobody is waiting for yet are parked for *unclaimed_ttl*
    seconds, because Twitch can send the verification request before the
    creation call has read its 202 response.
    """

    def __init__(self, unclaimed_maxsize: int = 1024, unclaimed_ttl: float = 60.0):
        self._waiters: dict[str, asyncio.Future[str]] = {}
        self._unclaimed: TTLCache = TTLCache(maxsize=unclaimed_maxsize, ttl=unclaimed_ttl)

    @property
    def pending(self) -> int:
        return len(self._waiters)

    def publish(self, subscription_id: str) -> None:
        """Deliver a confirmation. Never blocks."""
        waiter = self._waiters.get(subscription_id)
        if waiter is not None and not waiter.done():
            waiter.set_result(subscription_id)
            return
        logger.debug(f"No pending creation for {subscription_id}, parking confirmation")
        self._unclaimed[subscription_id] = True

    async def wait_for(self, subscription_id: str, timeout: float) -> str:
        """Wait until *subscription_id* is confirmed.

        Raises :class:`TimeoutError` after *timeout* seconds.
        """
        if self._unclaimed.pop(subscription_id, None) is not None:
            return subscription_id

        waiter = self._waiters.get(subscription_id)
        if waiter is None or waiter.done():
            waiter = asyncio.get_running_loop().create_future()
            self._waiters[subscription_id] = waiter
        try:
            return await asyncio.wait_for(asyncio.shield(waiter), timeout=timeout)
        finally:
            if self._waiters.get(subscription_id) is waiter:
                del self._waiters[subscription_id]
