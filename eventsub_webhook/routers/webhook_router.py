"""EventSub callback route"""

import logging

from fastapi import APIRouter, Request, Response

from eventsub_webhook.core.dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


def create_webhook_router(dispatcher: WebhookDispatcher, path: str = "/eventsub") -> APIRouter:
    """Build a router that feeds Twitch callbacks posted to *path* into *dispatcher*."""
    router = APIRouter(tags=["eventsub"])

    @router.post(path, include_in_schema=False)
    async def eventsub_callback(request: Request) -> Response:
        """Receive a Twitch EventSub callback"""
        try:
            body = await request.body()
        except Exception as e:
            logger.error(f"Could not read request body: {e}")
            return Response(status_code=500)

        result = await dispatcher.handle(request.headers, body)
        if result.status_code == 204:
            return Response(status_code=204)
        return Response(
            content=result.body, status_code=result.status_code, media_type=result.media_type
        )

    return router
