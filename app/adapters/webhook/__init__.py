"""Referral webhook adapter layer - hides the HTTP transport from services."""

from app.adapters.webhook.base import AbstractWebhookClient, WebhookResponse
from app.adapters.webhook.factory import create_webhook_client
from app.adapters.webhook.httpx_client import HttpxWebhookClient

__all__ = [
    "AbstractWebhookClient",
    "HttpxWebhookClient",
    "WebhookResponse",
    "create_webhook_client",
]
