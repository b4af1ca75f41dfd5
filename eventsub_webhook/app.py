"""FastAPI application factory"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from eventsub_webhook.client import EventSubClient
from eventsub_webhook.core.config import EventSubSettings, get_settings
from eventsub_webhook.core.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: EventSubSettings | None = None,
    client: EventSubClient | None = None,
) -> FastAPI:
    """Create the app serving the EventSub callback.

    The client is started on startup and closed on shutdown. Register
    handlers on ``app.state.eventsub`` before the app starts.
    """
    settings = settings or (client.settings if client else get_settings())
    client = client or EventSubClient(settings)
    start_time = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle startup and shutdown"""
        logger.info("Starting EventSub webhook server")
        logger.info(f"Callback URL: {settings.webhook_url}")
        await client.start()

        yield

        logger.info("Shutting down EventSub webhook server")
        await client.dispatcher.drain()
        await client.close()

    app = FastAPI(
        title="EventSub Webhook",
        description="Twitch EventSub webhook receiver",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.eventsub = client
    app.include_router(client.router)

    # Liveness probe: always 200, no external dependency
    @app.get("/health")
    async def health():
        """Liveness check"""
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - start_time),
            "pending_verifications": client.rendezvous.pending,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        """Ping endpoint"""
        return "pong"

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
