from .webhook_router import create_webhook_router

__all__ = ["create_webhook_router"]
