"""App access token lifecycle.

Exactly one token is current at a time. It is regenerated when Helix
answers 401 and validated in the background once per interval.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

from eventsub_webhook.errors import UnauthorizedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_VALIDATE_INTERVAL = 3600.0


class TokenSource(Protocol):
    async def generate_app_token(self) -> str: ...

    async def validate_token(self, access_token: str) -> bool: ...


class CredentialManager:
    """Owns the current app access token."""

    def __init__(self, source: TokenSource, validate_interval: float = DEFAULT_VALIDATE_INTERVAL):
        self._source = source
        self._validate_interval = validate_interval
        self._token: str | None = None
        self._refresh_lock = asyncio.Lock()
        self._validation_task: asyncio.Task | None = None

    @property
    def token(self) -> str:
        """Latest token. Always read this right before a request."""
        if self._token is None:
            raise RuntimeError("CredentialManager is not initialized")
        return self._token

    @property
    def is_initialized(self) -> bool:
        return self._token is not None

    async def initialize(self) -> None:
        """Generate the first token. Failure is fatal to the caller."""
        logger.info("Generating app access token")
        self._token = await self._source.generate_app_token()
        logger.info("App access token generated")

    async def refresh(self, stale_token: str | None = None) -> str:
        """Regenerate the token.

        If *stale_token* is given and the current token already differs,
        another caller refreshed it in the meantime and the current token is
        returned as-is.
        """
        async with self._refresh_lock:
            if stale_token is not None and self._token is not None and self._token != stale_token:
                logger.debug("Token already refreshed by another caller")
                return self._token
            logger.info("Token invalid, generating a new one")
            self._token = await self._source.generate_app_token()
            return self._token

    async def validate_and_refresh(self) -> None:
        """Validate the current token and regenerate it if Twitch rejects it."""
        token = self.token
        if await self._source.validate_token(token):
            logger.debug("App access token is valid")
            return
        await self.refresh(stale_token=token)

    async def call_with_reauth(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run *operation*, retrying it once after a token refresh on 401.

        *operation* must read :attr:`token` itself so the retry picks up the
        new value.
        """
        token = self.token
        try:
            return await operation()
        except UnauthorizedError as unauthorized:
            try:
                await self.refresh(stale_token=token)
            except Exception as e:
                logger.error(f"Could not regenerate app access token: {e}")
                raise unauthorized from e
            return await operation()

    # ------------------------------------------------------------------
    # Background validation
    # ------------------------------------------------------------------

    def start_validation_loop(self) -> None:
        if self._validation_task is None or self._validation_task.done():
            self._validation_task = asyncio.create_task(self._validation_loop())

    async def _validation_loop(self) -> None:
        """Periodically validate the token; errors wait for the next tick."""
        while True:
            await asyncio.sleep(self._validate_interval)
            try:
                await self.validate_and_refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Could not validate token: {type(e).__name__}: {e}")

    async def stop(self) -> None:
        """Cancel the background validation task."""
        task, self._validation_task = self._validation_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
